"""FastAPI application entry point."""

import logging
import logging.config
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from settlement.api.routes import accounts, exchange, health, log, metrics, rates
from settlement.core.config import settings
from settlement.core.exceptions import AppException, app_exception_handler
from settlement.core.metrics import InMemoryMetrics
from settlement.core.middleware import RequestLoggingMiddleware
from settlement.core.rate_limit import limiter, rate_limit_exceeded_handler
from settlement.repositories.ledger_store import LedgerStore
from settlement.services.exchange_service import ExchangeService
from settlement.services.transfer_gateway import build_transfer_gateway
from settlement.storage import SqlKeyValueStore, build_store

# Configure logging
logging.config.dictConfig(settings.LOGGING_CONFIG)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan events."""
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})")

    store = build_store(settings)
    if isinstance(store, SqlKeyValueStore) and settings.ENVIRONMENT == "development":
        # Create tables (use Alembic in production)
        await store.create_tables()

    ledger = LedgerStore(store, max_retries=settings.STORAGE_CAS_MAX_RETRIES)
    await ledger.initialize(seed=settings.SEED_DEFAULT_DATA)

    gateway = build_transfer_gateway(settings)

    app.state.store = store
    app.state.exchange_service = ExchangeService.create(ledger, gateway, settings)
    app.state.metrics = InMemoryMetrics()

    logger.info(f"Exchange API listening on port {settings.PORT}")
    yield

    logger.info("Shutting down application")
    await gateway.aclose()
    await store.close()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_CREDENTIALS,
    allow_methods=settings.CORS_METHODS,
    allow_headers=settings.CORS_HEADERS,
)

# Outermost layer: middleware is applied in reverse order
app.add_middleware(RequestLoggingMiddleware)

# Register exception handlers
app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(metrics.router, tags=["metrics"])
app.include_router(accounts.router, prefix="/api/v1/accounts", tags=["accounts"])
app.include_router(rates.router, prefix="/api/v1/rates", tags=["rates"])
app.include_router(log.router, prefix="/api/v1/log", tags=["log"])
app.include_router(exchange.router, prefix="/api/v1/exchange", tags=["exchange"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
