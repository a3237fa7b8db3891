"""Tests for health endpoints."""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from settlement.storage import MemoryKeyValueStore

pytestmark = pytest.mark.integration


async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_storage_health(client: AsyncClient) -> None:
    response = await client.get("/health/storage")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_storage_health_reports_unreachable_backend(
    client: AsyncClient, store: MemoryKeyValueStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(store, "ping", AsyncMock(return_value=False))

    response = await client.get("/health/storage")

    assert response.json()["status"] == "unhealthy"
