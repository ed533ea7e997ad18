"""Rate limiting for the interpretation endpoints using slowapi."""
import logging
import time

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from medreport.middleware.tracing import TRACE_ID_CTX_VAR
from medreport.utils.app import _env_bool, _env_str

logger = logging.getLogger("medreport")

SIMPLIFY_RATE_LIMIT = _env_str("RATE_LIMIT_SIMPLIFY", "30/minute")

limiter = Limiter(
    key_func=get_remote_address,
    enabled=_env_bool("RATE_LIMIT_ENABLED", True),
    default_limits=[],
)


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    try:
        retry_after = max(1, int(getattr(exc, "reset_time", time.time()) - time.time()))
    except (TypeError, ValueError):
        retry_after = 60
    logger.info({
        "function": "rate_limit",
        "path": str(request.url.path),
        "client": get_remote_address(request),
    })
    return JSONResponse(
        status_code=429,
        headers={"Retry-After": str(retry_after)},
        content={
            "code": "TOO_MANY_REQUESTS",
            "message": "Too many requests. Please wait a bit and try again.",
            "details": str(exc.detail),
            "trace_id": TRACE_ID_CTX_VAR.get(),
        },
    )
