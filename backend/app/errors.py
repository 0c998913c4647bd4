"""Exception handlers that render every failure as the JSON error envelope.

    {"success": false, "error": <kind>, "message": <text>, ...}
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gigflow.errors import GigFlowError

from .logging_config import get_logger

logger = get_logger("gigflow.api.errors")

# Error kind for plain HTTPExceptions (auth dependency, unknown routes)
_STATUS_KINDS = {
    400: "validation",
    401: "unauthenticated",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "rate_limited",
    503: "upstream",
}

# pydantic error types that mean "present but outside the allowed range"
_RANGE_ERROR_TYPES = {
    "greater_than",
    "greater_than_equal",
    "less_than",
    "less_than_equal",
    "string_too_short",
    "string_too_long",
    "too_short",
    "too_long",
}


def _field_name(loc) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header", "cookie")]
    return ".".join(parts) or "body"


def _reason(error_type: str) -> str:
    if error_type == "missing":
        return "missing"
    if error_type in _RANGE_ERROR_TYPES:
        return "out_of_range"
    return "invalid"


async def gigflow_error_handler(request: Request, exc: GigFlowError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} | {exc.kind} | {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": _field_name(err.get("loc", ())), "reason": _reason(err.get("type", ""))}
        for err in exc.errors()
    ]
    first = exc.errors()[0] if exc.errors() else {}
    message = first.get("msg", "Invalid request")
    if errors:
        message = f"{errors[0]['field']}: {message}"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "validation", "message": message, "errors": errors},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    content = {
        "success": False,
        "error": _STATUS_KINDS.get(exc.status_code, "server_error" if exc.status_code >= 500 else "error"),
        "message": str(exc.detail),
    }
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "server_error", "message": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GigFlowError, gigflow_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
