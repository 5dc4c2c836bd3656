"""
campuscart/core/exceptions.py

Domain Exceptions and Error Responses

Defines the error taxonomy raised by the service layer and the handlers that
turn every error into a JSON body of the form {"message": "..."}:
- ValidationError / SelfMessageError  -> 400
- UnauthorizedError                   -> 401
- ForbiddenError                      -> 403
- NotFoundError and subclasses        -> 404
- StoreError                          -> 500
- anything unhandled                  -> 500 "Internal server error."
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# ---------------------------------------------------
# Base Error
# ---------------------------------------------------
class CampusCartError(Exception):
    """Base class for errors recovered at the REST boundary."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------
# 4xx Errors
# ---------------------------------------------------
class ValidationError(CampusCartError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request."


class SelfMessageError(ValidationError):
    default_message = "You cannot send a message to yourself."


class UnauthorizedError(CampusCartError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "You must be logged in to perform this action."


class ForbiddenError(CampusCartError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not authorized to perform this action."


class NotFoundError(CampusCartError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found."


class UserNotFound(NotFoundError):
    default_message = "User not found."


class ProductNotFound(NotFoundError):
    default_message = "Product not found."


class ConversationNotFound(NotFoundError):
    default_message = "Conversation not found or you are not a participant."


class NotParticipantError(ConversationNotFound):
    """Raised for non-participants; rendered exactly like a missing conversation."""


# ---------------------------------------------------
# 5xx Errors
# ---------------------------------------------------
class StoreError(CampusCartError):
    default_message = "Server error while saving data."


# ---------------------------------------------------
# Exception Handlers
# ---------------------------------------------------
async def campus_cart_error_handler(request: Request, exc: CampusCartError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"[ERROR] {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(
            f"[ERROR] {request.method} {request.url.path} -> {exc.status_code}: {exc.message}"
        )
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": message},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid value for '{field}': {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request."
    logger.info(f"[VALIDATION] {request.method} {request.url.path}: {message}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": message})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"[ERROR] Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": CampusCartError.default_message},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the JSON {"message"} error handlers on the application."""
    app.add_exception_handler(CampusCartError, campus_cart_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
