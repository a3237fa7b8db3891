"""Exchange rate schemas for request/response validation."""

from decimal import Decimal

from pydantic import Field, TypeAdapter

from settlement.schemas.base import CamelModel

# base currency -> counter currency -> rate ("1 base = rate counter")
RateTableSnapshot = dict[str, dict[str, Decimal]]

rate_table_adapter: TypeAdapter[RateTableSnapshot] = TypeAdapter(RateTableSnapshot)


class RateUpdate(CamelModel):
    """Schema for setting the rate of an ordered currency pair."""

    base_currency: str = Field(..., min_length=3, max_length=3, pattern="^[A-Z]{3}$")
    counter_currency: str = Field(..., min_length=3, max_length=3, pattern="^[A-Z]{3}$")
    rate: Decimal = Field(..., gt=0)
