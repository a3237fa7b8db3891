"""Declarative base for the ledger tables."""

from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for ledger models; its metadata drives Alembic autogenerate."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TimestampMixin:
    """Adds timezone-aware ``created_at`` and ``updated_at`` columns.

    ``updated_at`` also moves on bulk ``UPDATE`` statements, which is how
    conditional ledger writes are issued.
    """

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


__all__ = ["Base", "TimestampMixin"]
