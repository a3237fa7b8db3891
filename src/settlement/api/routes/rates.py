"""Rate API routes for reading and setting exchange rates."""

import logging

from fastapi import APIRouter, Request

from settlement.core.config import settings
from settlement.core.deps import ExchangeServiceDep
from settlement.core.rate_limit import limiter
from settlement.schemas.rate import RateTableSnapshot, RateUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=RateTableSnapshot)
async def get_rates(service: ExchangeServiceDep) -> RateTableSnapshot:
    """Return the full rate table (base -> counter -> rate).

    Example:
        GET /api/v1/rates
    """
    return await service.get_rates()


@router.put("/", response_model=RateTableSnapshot)
@limiter.limit(settings.ADMIN_RATE_LIMIT)
async def set_rate(
    request: Request,
    rate_update: RateUpdate,
    service: ExchangeServiceDep,
) -> RateTableSnapshot:
    """Set the rate of a currency pair; the reverse pair gets the reciprocal.

    Returns:
        The rate table after the update

    Example:
        PUT /api/v1/rates
        {"baseCurrency": "USD", "counterCurrency": "EUR", "rate": "0.92"}
    """
    await service.set_rate(rate_update)
    return await service.get_rates()
