"""Rate limiting configuration using slowapi."""

import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from settlement.core.config import settings

logger = logging.getLogger(__name__)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Convert a slowapi rejection into a 429 JSON response.

    The body matches the application error format and carries ``retry_after``,
    which is also sent as the ``Retry-After`` header.
    """
    limit = getattr(exc, "limit", None)
    retry_after = int(limit.limit.get_expiry()) if limit is not None else 60

    client_host = request.client.host if request.client else "unknown"
    logger.warning(f"Rate limit exceeded on {request.url.path} by {client_host}: {exc.detail}")

    return JSONResponse(
        status_code=429,
        content={
            "detail": f"Rate limit exceeded: {exc.detail}",
            "error_code": "RATE_LIMITED",
            "retry_after": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )


# Each endpoint sets its own limit
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    enabled=settings.RATE_LIMIT_ENABLED,
    headers_enabled=False,  # Incompatible with endpoints returning response models
)
