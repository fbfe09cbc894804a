"""
StudioGen Backend - Request Logging Middleware
================================================

What:  One access log line per request: method, path, status, duration,
       request ID and client IP.
Who:   Logger "studiogen.access"; configured by setup_logging() in main.py.

Level follows the status code:
    5xx → ERROR, 4xx → WARNING, everything else → INFO

Unhandled exceptions from the routes are turned into the 500 error envelope
here. This middleware runs inside RequestIDMiddleware and the CORS and
security header layers, so the answer still carries the request ID and those
headers (Starlette's own 500 handler sits outside all of them).

Not logged: request bodies (passwords, base64 images), Authorization headers
and query strings (reset tokens can travel there).
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from studiogen.middleware.request_id import request_id_var
from studiogen.responses import internal_error_response
from studiogen.utils import get_client_ip

logger = logging.getLogger("studiogen.access")
error_logger = logging.getLogger(__name__)

# Liveness probes hit these every few seconds
QUIET_PATH_PREFIX = "/health"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        start_time = time.perf_counter()
        method = request.method
        client_ip = get_client_ip(request)
        rid = request_id_var.get("")

        try:
            response = await call_next(request)
        except Exception as e:
            error_logger.error(
                "Unexpected error on %s %s: %s",
                method,
                path,
                e,
                exc_info=True,
            )
            response = internal_error_response()

        if path.startswith(QUIET_PATH_PREFIX):
            return response

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
