"""Schemas package."""

from settlement.schemas.account import Account, BalanceUpdate
from settlement.schemas.exchange import ExchangeOutcome, ExchangeRequest, ExchangeResult
from settlement.schemas.rate import RateTableSnapshot, RateUpdate

__all__ = [
    # Account schemas
    "Account",
    "BalanceUpdate",
    # Rate schemas
    "RateTableSnapshot",
    "RateUpdate",
    # Exchange schemas
    "ExchangeOutcome",
    "ExchangeRequest",
    "ExchangeResult",
]
