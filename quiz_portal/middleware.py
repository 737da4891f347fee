"""HTTP middleware: request ids and request logging."""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from quiz_portal.logging_config import generate_request_id, get_logger, set_request_id

logger = get_logger(__name__)

SKIP_LOGGING_PATHS = ("/health",)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log method, path, status and duration.

    The id is taken from an incoming X-Request-ID header when present and
    echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        response.headers["X-Request-ID"] = request_id
        if request.url.path not in SKIP_LOGGING_PATHS:
            logger.info(
                "HTTP %s %s - %s (%.2fms)",
                request.method, request.url.path, response.status_code, duration_ms,
                extra={
                    "event_type": "http_request",
                    "http_method": request.method,
                    "http_path": request.url.path,
                    "http_status": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                },
            )
        return response
