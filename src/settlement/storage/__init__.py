"""Ledger storage backends."""

import logging

from settlement.core.config import Settings
from settlement.db.session import create_engine_from_settings, create_session_factory
from settlement.storage.base import KeyValueStore, VersionedValue
from settlement.storage.memory import MemoryKeyValueStore
from settlement.storage.redis import RedisKeyValueStore
from settlement.storage.sql import SqlKeyValueStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> KeyValueStore:
    """Construct the backend selected by ``settings.STORAGE_BACKEND``."""
    if settings.STORAGE_BACKEND == "redis":
        logger.info(f"Using Redis ledger storage at {settings.REDIS_URL}")
        return RedisKeyValueStore.from_settings(settings)

    if settings.STORAGE_BACKEND == "memory":
        logger.warning("Using in-memory ledger storage; state is lost on restart")
        return MemoryKeyValueStore()

    engine = create_engine_from_settings(settings)
    logger.info("Using SQL ledger storage")
    return SqlKeyValueStore(engine, create_session_factory(engine))


__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "RedisKeyValueStore",
    "SqlKeyValueStore",
    "VersionedValue",
    "build_store",
]
