"""Domain errors and the response-envelope exception handlers.

Services raise ``ServiceError`` subclasses and never catch them; the
request-scoped session rolls back before these handlers render the error.
"""

import logging
from http import HTTPStatus

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for errors reported to the caller through the envelope."""

    status: int = 400

    def __init__(self, message: str, data: dict | None = None):
        super().__init__(message)
        self.message = message
        self.data = data


class ValidationFailed(ServiceError):
    status = 400


class NotAuthenticated(ServiceError):
    status = 401


class PermissionDenied(ServiceError):
    status = 403


class NotFound(ServiceError):
    status = 404


class StateConflict(ServiceError):
    """The entity is not in the state the operation requires."""

    status = 409


class InsufficientFunds(ServiceError):
    status = 400


class UploadMissing(ServiceError):
    """An evidence upload referenced by the client is not in storage."""

    status = 400


class IntegrationFailure(ServiceError):
    status = 502


def status_text(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Error"


def envelope_response(
    status: int,
    message: str,
    data: object | None = None,
) -> JSONResponse:
    content: dict = {
        "statusCode": status < 400,
        "statusText": status_text(status),
        "message": message,
    }
    if data is not None:
        content["data"] = jsonable_encoder(data)
    return JSONResponse(status_code=status, content=content)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status, exc.message)
    return envelope_response(exc.status, exc.message, exc.data)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else status_text(exc.status_code)
    return envelope_response(exc.status_code, message)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return envelope_response(422, "Request validation failed", {"errors": exc.errors()})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return envelope_response(500, "Internal server error")
