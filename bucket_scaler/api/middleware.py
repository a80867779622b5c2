"""
FastAPI middleware for request handling.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from bucket_scaler.utils.logging import get_logger, log_context

logger = get_logger(__name__)

# Polled by kubelets and scrapers; not worth a log line per request
QUIET_PATH_PREFIXES = ("/health", "/metrics")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Attach a request ID to the request, its log lines and its response,
    and log the request duration.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.perf_counter()

        with log_context(request_id=request_id):
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start_time) * 1000

            if not request.url.path.startswith(QUIET_PATH_PREFIXES):
                logger.info(
                    "Request completed",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round(duration_ms, 2),
                )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response
