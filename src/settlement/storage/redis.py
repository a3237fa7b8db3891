"""Redis-backed key-value store using ``redis.asyncio``.

Every key holds a JSON envelope ``{"version": n, "value": ...}``. Writes that
depend on the current version run inside WATCH/MULTI/EXEC so a concurrent
writer aborts the transaction instead of being overwritten.
"""

import json
import logging
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from settlement.core.config import Settings
from settlement.core.exceptions import StorageConflictError, StorageError
from settlement.storage.base import VersionedValue

logger = logging.getLogger(__name__)


def _encode(value: Any, version: int) -> str:
    return json.dumps({"version": version, "value": value})


def _decode(raw: str | None) -> VersionedValue | None:
    if raw is None:
        return None
    envelope = json.loads(raw)
    return VersionedValue(envelope["value"], envelope["version"])


class RedisKeyValueStore:
    """Key-value store persisted in Redis.

    Args:
        client: Redis client created with ``decode_responses=True``
        max_retries: Attempts allowed for an unconditional write that keeps
            racing other writers before giving up with ``StorageConflictError``
    """

    def __init__(self, client: "Redis[str]", *, max_retries: int = 10) -> None:
        self._client = client
        self._max_retries = max_retries

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisKeyValueStore":
        """Create a store with a client configured from ``settings``."""
        client: Redis[str] = Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_SOCKET_CONNECT_TIMEOUT,
        )
        return cls(client, max_retries=settings.STORAGE_CAS_MAX_RETRIES)

    async def get(self, key: str) -> VersionedValue | None:
        try:
            raw = await self._client.get(key)
        except RedisError as e:
            raise StorageError(f"Failed to read ledger record '{key}': {e}") from e
        return _decode(raw)

    async def set(self, key: str, value: Any) -> None:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                for attempt in range(1, self._max_retries + 1):
                    try:
                        await pipe.watch(key)
                        current = _decode(await pipe.get(key))
                        version = current.version + 1 if current else 1
                        pipe.multi()
                        pipe.set(key, _encode(value, version))
                        await pipe.execute()
                        return
                    except WatchError:
                        logger.debug(
                            f"Write on '{key}' raced with another writer "
                            f"(attempt {attempt}), retrying"
                        )
        except RedisError as e:
            raise StorageError(f"Failed to write ledger record '{key}': {e}") from e

        logger.error(f"Giving up on write to '{key}' after {self._max_retries} conflicting writes")
        raise StorageConflictError(
            f"Ledger record '{key}' kept changing; write abandoned after "
            f"{self._max_retries} attempts"
        )

    async def compare_and_set(self, key: str, value: Any, expected_version: int) -> bool:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    current = _decode(await pipe.get(key))
                    if current is None or current.version != expected_version:
                        await pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.set(key, _encode(value, expected_version + 1))
                    await pipe.execute()
                    return True
                except WatchError:
                    logger.debug(f"Conditional write on '{key}' lost to a concurrent writer")
                    return False
        except RedisError as e:
            raise StorageError(f"Failed to write ledger record '{key}': {e}") from e

    async def set_if_absent(self, key: str, value: Any) -> bool:
        try:
            created = await self._client.set(key, _encode(value, 1), nx=True)
        except RedisError as e:
            raise StorageError(f"Failed to create ledger record '{key}': {e}") from e
        return bool(created)

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()
