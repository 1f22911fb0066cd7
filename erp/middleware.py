"""Request logging and rate limiting for the ERP API."""

import time
import uuid
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from erp.core.config import settings
from erp.error_handlers import error_body
from erp.logging_config import get_logger

logger = get_logger("middleware")

# Applied to every route by SlowAPIMiddleware
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    enabled=settings.rate_limit_enabled,
)


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request with status and duration.

    The request id (taken from ``X-Request-ID`` or generated) is echoed back
    so a client report can be matched to the log.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = (time.perf_counter() - started) * 1000
            logger.error(
                f"[{request_id}] {request.method} {request.url.path} failed after "
                f"{elapsed:.2f}ms ({client_address(request)}): {e}",
                exc_info=True
            )
            raise

        elapsed = (time.perf_counter() - started) * 1000
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} "
            f"in {elapsed:.2f}ms ({client_address(request)})"
        )
        response.headers["X-Process-Time"] = f"{elapsed:.2f}ms"
        response.headers["X-Request-ID"] = request_id
        return response


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """429 in the common error body shape."""
    logger.warning(f"Rate limit exceeded by {client_address(request)} on {request.url.path}")
    return JSONResponse(
        status_code=429,
        content=error_body(
            429,
            "Too many requests. Please slow down and try again later.",
            request,
            {"limit": str(exc.detail)},
        ),
        headers={"Retry-After": "60"},
    )
