import logging
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

TRACE_ID_CTX_VAR: ContextVar[str] = ContextVar("trace_id", default="")
TRACE_HEADER = "x-trace-id"


class TraceIdFilter(logging.Filter):
    """Stamp every log record with the trace id of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = TRACE_ID_CTX_VAR.get()
        return True


class TracingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add a trace_id to every request and response.
    An incoming x-trace-id is reused so callers can correlate their own logs.
    """
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        incoming = (request.headers.get(TRACE_HEADER) or "").strip()
        trace_id = incoming[:64] if incoming else str(uuid.uuid4())
        TRACE_ID_CTX_VAR.set(trace_id)
        request.state.trace_id = trace_id

        response = await call_next(request)

        # Propagate trace id to client; header names are case-insensitive
        response.headers[TRACE_HEADER] = trace_id
        return response
