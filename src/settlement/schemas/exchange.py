"""Exchange request and result schemas."""

import enum
from datetime import datetime
from decimal import Decimal

from pydantic import AliasChoices, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from settlement.schemas.base import CamelModel


class ExchangeOutcome(str, enum.Enum):
    """Terminal state reached by one exchange attempt."""

    COMMITTED = "COMMITTED"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    WITHDRAWAL_FAILED = "WITHDRAWAL_FAILED"
    PAYOUT_FAILED = "PAYOUT_FAILED"


class ExchangeRequest(CamelModel):
    """Client request to convert ``base_amount`` of one currency into another.

    ``base_account_id`` and ``counter_account_id`` identify the client's own
    accounts, which live outside this service and are only reached through
    the transfer gateway.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    base_currency: str = Field(..., min_length=3, max_length=3, pattern="^[A-Z]{3}$")
    counter_currency: str = Field(..., min_length=3, max_length=3, pattern="^[A-Z]{3}$")
    base_account_id: str = Field(..., min_length=1)
    counter_account_id: str = Field(..., min_length=1)
    base_amount: Decimal = Field(..., gt=0)


class ExchangeResult(CamelModel):
    """Outcome of one exchange attempt.

    The same record is returned to the caller and appended to the transaction
    log, where it is never modified again.

    Attributes:
        id: Unique identifier generated when the attempt started
        timestamp: Creation time (UTC)
        ok: Whether the exchange completed
        request: Verbatim copy of the originating request
        exchange_rate: Rate used for the computation
        counter_amount: Amount paid out in the counter currency (0 unless ok)
        observation: Failure reason, None on success
        outcome: Terminal state of the attempt
        compensated: Whether the reversing transfer succeeded after a payout
            failure; None when no reversal was needed
    """

    id: str
    # Log entries from earlier deployments use "ts" and "obs"
    timestamp: datetime = Field(..., validation_alias=AliasChoices("timestamp", "ts"))
    ok: bool = False
    request: ExchangeRequest
    exchange_rate: Decimal
    counter_amount: Decimal = Decimal("0")
    observation: str | None = Field(None, validation_alias=AliasChoices("observation", "obs"))
    outcome: ExchangeOutcome | None = None
    compensated: bool | None = None


exchange_log_adapter: TypeAdapter[list[ExchangeResult]] = TypeAdapter(list[ExchangeResult])
