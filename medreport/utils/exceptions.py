from typing import Any
from fastapi import Request, status
from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

from medreport.middleware.tracing import TRACE_ID_CTX_VAR


class ReportValidationError(ValueError):
    """Top-level input rejected before any report processing."""


class TableError(ValueError):
    """A catalog, range or interpretation table is malformed."""


class NarrativeServiceError(RuntimeError):
    """The external narrative service failed or returned an unusable payload."""


def status_to_code(status_code: int) -> str:
    mapping = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        413: "PAYLOAD_TOO_LARGE",
        415: "UNSUPPORTED_MEDIA_TYPE",
        422: "UNPROCESSABLE_ENTITY",
        429: "TOO_MANY_REQUESTS",
        500: "INTERNAL_SERVER_ERROR",
    }
    return mapping.get(status_code, f"HTTP_{status_code}")


async def handle_http_exception(request: Request, exc: HTTPException):
    trace_id = TRACE_ID_CTX_VAR.get()
    detail: Any = exc.detail
    message = detail if isinstance(detail, str) else "HTTP error"
    body = {"code": status_to_code(exc.status_code), "message": message, "trace_id": trace_id}
    if detail is not None:
        body["details"] = detail
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def handle_validation_exception(request: Request, exc: RequestValidationError):
    # Malformed request bodies are client errors, reported as 400 like any other rejected input
    trace_id = TRACE_ID_CTX_VAR.get()
    body = {
        "code": status_to_code(status.HTTP_400_BAD_REQUEST),
        "message": "Invalid request",
        "details": jsonable_encoder(exc.errors(), custom_encoder={Exception: str}),
        "trace_id": trace_id,
    }
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


async def handle_unhandled_exception(request: Request, exc: Exception):
    trace_id = TRACE_ID_CTX_VAR.get()
    body = {
        "code": "INTERNAL_SERVER_ERROR",
        "message": "An unexpected error occurred",
        "details": str(exc),
        "trace_id": trace_id,
    }
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)
