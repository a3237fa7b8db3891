"""Dependencies for FastAPI routes.

Collaborators are built once in the application lifespan and stored on
``app.state``; these dependencies hand them to route handlers and are the
seam tests override.
"""

from typing import Annotated

from fastapi import Depends, Request

from settlement.core.metrics import MetricsRecorder
from settlement.services.exchange_service import ExchangeService
from settlement.storage.base import KeyValueStore


def get_exchange_service(request: Request) -> ExchangeService:
    """Return the exchange service built at startup."""
    return request.app.state.exchange_service


def get_metrics(request: Request) -> MetricsRecorder:
    """Return the metrics recorder built at startup."""
    return request.app.state.metrics


def get_store(request: Request) -> KeyValueStore:
    """Return the ledger storage backend built at startup."""
    return request.app.state.store


# Type aliases for cleaner dependency injection
ExchangeServiceDep = Annotated[ExchangeService, Depends(get_exchange_service)]
MetricsDep = Annotated[MetricsRecorder, Depends(get_metrics)]
StoreDep = Annotated[KeyValueStore, Depends(get_store)]
