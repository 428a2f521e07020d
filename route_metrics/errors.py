import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .stats import iso_now

log = logging.getLogger(__name__)


def _code_for(status: int) -> str:
    try:
        return HTTPStatus(status).name
    except ValueError:
        return "ERROR"


def _phrase_for(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Error"


def error_response(status: int, message: str, code: str | None = None, details=None,
                   headers: dict[str, str] | None = None) -> JSONResponse:
    """Uniform error envelope: ``{"success": false, "status": "error", "error": {...}}``."""
    error: dict[str, object] = {
        "code": code or _code_for(status),
        "message": message,
        "status": status,
        "timestamp": iso_now(),
    }
    if details:
        error["details"] = details
    body = {"success": False, "status": "error", "error": error}
    return JSONResponse(jsonable_encoder(body), status_code=status, headers=headers)


def _log_fields(request: Request, status: int, message: str) -> dict[str, object]:
    return {
        "method": request.method,
        "path": request.url.path,
        "status": status,
        "error": message,
        "request_id": getattr(request.state, "request_id", None),
    }


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else _phrase_for(exc.status_code)
    details = None if isinstance(exc.detail, str) else exc.detail
    code = "NOT_FOUND" if exc.status_code == 404 else None
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    log.log(
        level,
        "http error",
        extra={"event": "http.error", "extra_fields": _log_fields(request, exc.status_code, message)},
    )
    return error_response(exc.status_code, message, code, details, headers=getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    log.warning(
        "validation error",
        extra={"event": "http.error", "extra_fields": _log_fields(request, 422, "validation failed")},
    )
    return error_response(422, "Request validation failed", "VALIDATION_ERROR", exc.errors())


async def unhandled_error_handler(request: Request, exc: Exception):
    log.error(
        "unhandled error",
        exc_info=exc,
        extra={"event": "http.error", "extra_fields": _log_fields(request, 500, repr(exc))},
    )
    # Raised past the request-id middleware, so the header is set here.
    req_id = getattr(request.state, "request_id", None)
    headers = {"X-Request-Id": req_id} if req_id else None
    return error_response(500, "Internal server error", "INTERNAL_ERROR", headers=headers)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
