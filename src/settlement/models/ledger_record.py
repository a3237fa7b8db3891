"""Ledger record model backing the SQL key-value store."""

from typing import Any

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from settlement.db.base import Base, TimestampMixin


class LedgerRecord(Base, TimestampMixin):
    """One top-level ledger record (accounts, rates or log) stored as JSON.

    Records are always read and replaced as a whole. ``version`` is bumped on
    every write and is the stamp checked by conditional writes.

    Attributes:
        key: Record name - primary key
        value: JSON document holding the record
        version: Monotonic write counter, starts at 1
    """

    __tablename__ = "ledger_records"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON)
    version: Mapped[int] = mapped_column(Integer, default=1)
