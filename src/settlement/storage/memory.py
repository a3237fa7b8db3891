"""Process-local key-value store for development and tests."""

import asyncio
import copy
from typing import Any

from settlement.storage.base import VersionedValue


class MemoryKeyValueStore:
    """In-memory store with the same versioning rules as the durable backends.

    Documents are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self) -> None:
        self._data: dict[str, VersionedValue] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> VersionedValue | None:
        current = self._data.get(key)
        if current is None:
            return None
        return VersionedValue(copy.deepcopy(current.value), current.version)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            current = self._data.get(key)
            version = current.version + 1 if current else 1
            self._data[key] = VersionedValue(copy.deepcopy(value), version)

    async def compare_and_set(self, key: str, value: Any, expected_version: int) -> bool:
        async with self._lock:
            current = self._data.get(key)
            if current is None or current.version != expected_version:
                return False
            self._data[key] = VersionedValue(copy.deepcopy(value), expected_version + 1)
            return True

    async def set_if_absent(self, key: str, value: Any) -> bool:
        async with self._lock:
            if key in self._data:
                return False
            self._data[key] = VersionedValue(copy.deepcopy(value), 1)
            return True

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._data.clear()
