import logging
from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder

from app.core.exceptions import InventoryError
from app.schemas.response import ErrorBody, ErrorResponse

log = logging.getLogger("exception_handlers")


def _error(status_code: int, code: str, message, details=None) -> JSONResponse:
    body = ErrorResponse(error=ErrorBody(code=code, message=message, details=jsonable_encoder(details)))
    return JSONResponse(status_code=status_code, content=body.body())


# ----------- Exception Handlers (called by FastAPI) -----------

def inventory_exception_handler(request: Request, exc: InventoryError):
    """Handles domain errors, reporting which rule was violated."""
    if exc.status_code >= 500:
        log.error(f"{exc.code} on path {request.url.path}: {exc.message}")
    else:
        log.info(f"Rejected {request.method} {request.url.path}: {exc.message}")
    error = exc.to_dict()
    return _error(exc.status_code, error["code"], error["message"], error["details"] or None)


def http_exception_handler(request: Request, exc: HTTPException):
    """Handles exceptions raised by HTTPException (e.g., 404, 400)."""
    return _error(exc.status_code, "http_error", exc.detail)


def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles Pydantic validation errors (422 Unprocessable Entity)."""
    return _error(422, "validation_error", "Invalid input data", exc.errors())


def generic_exception_handler(request: Request, exc: Exception):
    """Handles all unhandled exceptions (500 Internal Server Error)."""
    log.error(f"Unhandled exception on path: {request.url.path}", exc_info=exc)
    return _error(500, "server_error", "Internal Server Error")


# ----------- Registration Function -----------

def setup_exception_handlers(app: FastAPI):
    """Registers all custom exception handlers with the FastAPI application."""

    app.add_exception_handler(InventoryError, inventory_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app
