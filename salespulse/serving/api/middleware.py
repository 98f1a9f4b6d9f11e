"""
API Middleware

Request logging. Each request gets an id, and requests under
/api/v1/analytics/{owner_id}/ also bind the owner, so reconciler and
analysis events logged while serving it can be traced back to both.
"""

import re
import time
import uuid
from typing import Callable, Dict

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

OWNER_PATH = re.compile(r"^/api/v1/analytics/(?P<owner_id>[^/]+)/")
HEALTH_PREFIX = "/api/v1/health"


def request_context(request: Request) -> Dict[str, str]:
    """Fields bound to every log event of one request"""
    context = {"request_id": request.headers.get("X-Request-ID") or uuid.uuid4().hex}
    match = OWNER_PATH.match(request.url.path)
    if match:
        context["owner_id"] = match.group("owner_id")
    return context


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log requests with timing; health checks only at debug level"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        context = request_context(request)
        quiet = request.url.path.startswith(HEALTH_PREFIX)

        with structlog.contextvars.bound_contextvars(**context):
            log = logger.debug if quiet else logger.info
            log("Request started", method=request.method, path=request.url.path)

            try:
                response = await call_next(request)
            except Exception:
                logger.exception("Request failed", duration_ms=self._elapsed_ms(started))
                raise

            duration_ms = self._elapsed_ms(started)
            if response.status_code >= 500:
                log = logger.warning
            log("Request completed", status_code=response.status_code, duration_ms=duration_ms)

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        response.headers["X-Request-ID"] = context["request_id"]
        return response

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)
