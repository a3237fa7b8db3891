"""Exchange API route: executes a client currency exchange."""

import logging
import time

from fastapi import APIRouter, BackgroundTasks, Request, Response
from fastapi import status as http_status

from settlement.core.config import settings
from settlement.core.deps import ExchangeServiceDep, MetricsDep
from settlement.core.rate_limit import limiter
from settlement.schemas.exchange import ExchangeOutcome, ExchangeRequest, ExchangeResult

logger = logging.getLogger(__name__)

router = APIRouter()

# HTTP status returned for each terminal state of an exchange
OUTCOME_STATUS = {
    ExchangeOutcome.COMMITTED: http_status.HTTP_200_OK,
    ExchangeOutcome.INSUFFICIENT_FUNDS: http_status.HTTP_409_CONFLICT,
    ExchangeOutcome.WITHDRAWAL_FAILED: http_status.HTTP_502_BAD_GATEWAY,
    ExchangeOutcome.PAYOUT_FAILED: http_status.HTTP_502_BAD_GATEWAY,
}


def status_for(result: ExchangeResult) -> int:
    """Map an exchange result to its HTTP status code."""
    if result.outcome is None:
        return http_status.HTTP_200_OK if result.ok else http_status.HTTP_500_INTERNAL_SERVER_ERROR
    return OUTCOME_STATUS[result.outcome]


@router.post(
    "/",
    response_model=ExchangeResult,
    responses={
        http_status.HTTP_409_CONFLICT: {"description": "Not enough funds on counter account"},
        http_status.HTTP_502_BAD_GATEWAY: {"description": "A transfer to or from the client failed"},
    },
)
@limiter.limit(settings.EXCHANGE_RATE_LIMIT)
async def execute_exchange(
    request: Request,
    response: Response,
    exchange_request: ExchangeRequest,
    background_tasks: BackgroundTasks,
    service: ExchangeServiceDep,
    metrics: MetricsDep,
) -> ExchangeResult:
    """Execute a currency exchange for a client.

    The body of the response is the logged result whether or not the exchange
    completed; the status code tells the outcome apart. Metrics are recorded
    after the response has been sent.

    Example:
        POST /api/v1/exchange
        {
            "baseCurrency": "ARS",
            "counterCurrency": "USD",
            "baseAccountId": "client-ars-001",
            "counterAccountId": "client-usd-001",
            "baseAmount": 1000000
        }
    """
    start = time.perf_counter()

    result = await service.exchange(exchange_request)
    response.status_code = status_for(result)

    duration_ms = (time.perf_counter() - start) * 1000
    background_tasks.add_task(metrics.record_exchange, response.status_code, duration_ms)
    return result
