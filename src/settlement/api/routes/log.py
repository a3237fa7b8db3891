"""Transaction log API route."""

from fastapi import APIRouter

from settlement.core.deps import ExchangeServiceDep
from settlement.schemas.exchange import ExchangeResult

router = APIRouter()


@router.get("/", response_model=list[ExchangeResult])
async def get_log(service: ExchangeServiceDep) -> list[ExchangeResult]:
    """Return every exchange attempt, oldest first."""
    return await service.get_log()
