"""SQL-backed key-value store using SQLAlchemy's async API.

Each ledger record is one row of ``ledger_records``. Conditional writes are a
single ``UPDATE ... WHERE key = :key AND version = :expected`` whose row count
tells whether the caller's snapshot was still current.
"""

import logging
from typing import Any

from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from settlement.core.exceptions import StorageError
from settlement.db.base import Base
from settlement.db.session import transactional
from settlement.models.ledger_record import LedgerRecord
from settlement.storage.base import VersionedValue

logger = logging.getLogger(__name__)


class SqlKeyValueStore:
    """Key-value store persisted in a relational database.

    Args:
        engine: Async engine, disposed by ``close()``
        session_factory: Factory producing sessions bound to ``engine``
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._engine = engine
        self._session_factory = session_factory

    async def create_tables(self) -> None:
        """Create the ledger tables (use Alembic in production)."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def get(self, key: str) -> VersionedValue | None:
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(LedgerRecord).where(LedgerRecord.key == key))
                record = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read ledger record '{key}': {e}") from e

        if record is None:
            return None
        return VersionedValue(record.value, record.version)

    async def set(self, key: str, value: Any) -> None:
        try:
            async with transactional(self._session_factory) as db:
                result = await db.execute(
                    select(LedgerRecord).where(LedgerRecord.key == key).with_for_update()
                )
                record = result.scalar_one_or_none()
                if record is None:
                    db.add(LedgerRecord(key=key, value=value, version=1))
                else:
                    record.value = value
                    record.version = record.version + 1
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write ledger record '{key}': {e}") from e

    async def compare_and_set(self, key: str, value: Any, expected_version: int) -> bool:
        try:
            async with transactional(self._session_factory) as db:
                result = await db.execute(
                    update(LedgerRecord)
                    .where(LedgerRecord.key == key, LedgerRecord.version == expected_version)
                    .values(value=value, version=expected_version + 1)
                )
                written = result.rowcount == 1
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write ledger record '{key}': {e}") from e

        if not written:
            logger.debug(f"Conditional write on '{key}' lost (expected version {expected_version})")
        return written

    async def set_if_absent(self, key: str, value: Any) -> bool:
        if await self.get(key) is not None:
            return False

        try:
            async with transactional(self._session_factory) as db:
                db.add(LedgerRecord(key=key, value=value, version=1))
        except IntegrityError:
            # Another writer created the record between the check and the insert
            return False
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create ledger record '{key}': {e}") from e
        return True

    async def ping(self) -> bool:
        try:
            async with self._session_factory() as db:
                await db.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    async def close(self) -> None:
        await self._engine.dispose()
