"""Logging middleware for HTTP requests and responses."""

import logging
import time
import uuid
from collections.abc import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware logging each request and its response time.

    Logs ``→ METHOD path`` on the way in and ``← METHOD path - status (secs)``
    on the way out (WARNING for 4xx/5xx). Every response gets an
    ``X-Process-Time`` header and an ``X-Request-ID`` header, echoing the
    caller's value when one was sent.

    Health, metrics and documentation paths are not logged.
    """

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self._quiet_paths = {
            "/health",
            "/health/storage",
            "/metrics",
            "/docs",
            "/openapi.json",
            "/redoc",
        }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        quiet = request.url.path in self._quiet_paths

        if not quiet:
            client_host = request.client.host if request.client else "unknown"
            logger.info(f"→ {request.method} {request.url.path} from {client_host} [{request_id}]")

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        if not quiet:
            log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
            logger.log(
                log_level,
                f"← {request.method} {request.url.path} - {response.status_code} "
                f"({duration:.3f}s) [{request_id}]",
            )

        response.headers["X-Process-Time"] = f"{duration:.3f}"
        response.headers["X-Request-ID"] = request_id
        return response
