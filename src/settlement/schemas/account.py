"""Account schemas."""

from decimal import Decimal

from pydantic import BaseModel, Field


class Account(BaseModel):
    """Internal account owned by the exchange service, one per currency."""

    id: int
    currency: str = Field(..., min_length=3, max_length=3)
    balance: Decimal


class BalanceUpdate(BaseModel):
    """Schema for overwriting an account balance."""

    balance: Decimal = Field(..., ge=0)
