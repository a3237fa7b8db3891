"""Database models."""

from settlement.models.ledger_record import LedgerRecord

__all__ = ["LedgerRecord"]
