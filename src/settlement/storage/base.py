"""Storage boundary shared by every ledger backend.

Values are JSON-compatible documents. Each key carries a version stamp that
is bumped on every write, which gives the ledger a compare-and-set primitive
instead of unguarded read-modify-write.
"""

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class VersionedValue:
    """A stored document together with the version it was read at."""

    value: Any
    version: int


class KeyValueStore(Protocol):
    """Durable map of JSON documents with conditional writes."""

    async def get(self, key: str) -> VersionedValue | None:
        """Return the current document for ``key``, or None when absent."""
        ...

    async def set(self, key: str, value: Any) -> None:
        """Replace the document for ``key`` unconditionally."""
        ...

    async def compare_and_set(self, key: str, value: Any, expected_version: int) -> bool:
        """Replace the document only if it is still at ``expected_version``."""
        ...

    async def set_if_absent(self, key: str, value: Any) -> bool:
        """Create the document only if ``key`` does not exist yet."""
        ...

    async def ping(self) -> bool:
        """Check that the backend is reachable."""
        ...

    async def close(self) -> None:
        """Release connections held by the store."""
        ...
