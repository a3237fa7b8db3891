"""Health check endpoints."""

from fastapi import APIRouter

from settlement.core.config import settings
from settlement.core.deps import StoreDep

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@router.get("/health/storage")
async def storage_health(store: StoreDep):
    """Ledger storage health check."""
    if await store.ping():
        return {"status": "healthy", "backend": settings.STORAGE_BACKEND}
    return {"status": "unhealthy", "backend": settings.STORAGE_BACKEND}
