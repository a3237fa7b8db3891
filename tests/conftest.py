"""Pytest fixtures for testing."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from main import app
from settlement.core.config import Settings
from settlement.core.deps import get_exchange_service, get_metrics, get_store
from settlement.core.metrics import InMemoryMetrics
from settlement.core.rate_limit import limiter
from settlement.db.session import create_engine_from_settings, create_session_factory
from settlement.repositories.ledger_store import LedgerStore
from settlement.services.exchange_service import ExchangeService
from settlement.storage import MemoryKeyValueStore, SqlKeyValueStore


@dataclass(frozen=True)
class TransferCall:
    from_account_id: str
    to_account_id: str
    amount: Decimal
    reference: str | None


class ScriptedTransferGateway:
    """Transfer gateway returning queued outcomes and recording every call.

    Once the queue is empty every transfer returns ``default``.
    """

    def __init__(self, outcomes: list[bool] | None = None, default: bool = True) -> None:
        self.calls: list[TransferCall] = []
        self._outcomes = list(outcomes or [])
        self._default = default

    def script(self, *outcomes: bool) -> None:
        self._outcomes.extend(outcomes)

    async def transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Decimal,
        *,
        reference: str | None = None,
    ) -> bool:
        self.calls.append(TransferCall(from_account_id, to_account_id, amount, reference))
        if self._outcomes:
            return self._outcomes.pop(0)
        return self._default

    async def aclose(self) -> None:
        return None


@pytest.fixture
def test_settings() -> Settings:
    """Settings with compensation retries that do not sleep."""
    return Settings(
        _env_file=None,
        STORAGE_BACKEND="memory",
        COMPENSATION_MAX_ATTEMPTS=3,
        COMPENSATION_BACKOFF_SECONDS=0,
    )


@pytest.fixture
def store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest_asyncio.fixture
async def ledger(store: MemoryKeyValueStore) -> LedgerStore:
    """Ledger seeded with the default accounts and rates."""
    ledger = LedgerStore(store)
    await ledger.initialize()
    return ledger


@pytest.fixture
def gateway() -> ScriptedTransferGateway:
    return ScriptedTransferGateway()


@pytest.fixture
def exchange_service(
    ledger: LedgerStore, gateway: ScriptedTransferGateway, test_settings: Settings
) -> ExchangeService:
    return ExchangeService.create(ledger, gateway, test_settings)


@pytest.fixture
def metrics() -> InMemoryMetrics:
    return InMemoryMetrics()


@pytest.fixture(autouse=True)
def reset_limiter():
    """Reset rate limiter storage so tests do not share request counts."""
    limiter.reset()
    yield
    limiter.reset()


@pytest_asyncio.fixture
async def client(
    exchange_service: ExchangeService,
    metrics: InMemoryMetrics,
    store: MemoryKeyValueStore,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client wired to the in-memory ledger and scripted gateway."""
    app.dependency_overrides[get_exchange_service] = lambda: exchange_service
    app.dependency_overrides[get_metrics] = lambda: metrics
    app.dependency_overrides[get_store] = lambda: store

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def sql_store(tmp_path: Path) -> AsyncGenerator[SqlKeyValueStore]:
    """SQL store on a throwaway SQLite database file."""
    settings = Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
    )
    engine = create_engine_from_settings(settings)
    store = SqlKeyValueStore(engine, create_session_factory(engine))
    await store.create_tables()

    yield store

    await store.close()
