# common/errors.py
import enum
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base error with the HTTP status it maps to at the API boundary."""

    status_code = 500
    error_code = "SERVICE_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(ServiceError):
    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, details={"field": field} if field else None)
        self.field = field


class NotFound(ServiceError):
    status_code = 404
    error_code = "NOT_FOUND"


class Conflict(ServiceError):
    status_code = 409
    error_code = "CONFLICT"


class Forbidden(ServiceError):
    status_code = 403
    error_code = "FORBIDDEN"

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class ConfigError(ServiceError):
    status_code = 500
    error_code = "CONFIG_ERROR"


class AuthErrorKind(str, enum.Enum):
    MISSING = "missing"
    EXPIRED = "expired"
    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    INVALID_CREDENTIALS = "invalid_credentials"


class AuthError(ServiceError):
    status_code = 401
    error_code = "UNAUTHENTICATED"

    def __init__(self, kind: AuthErrorKind, message: Optional[str] = None):
        super().__init__(message or f"Invalid token ({kind.value})")
        self.kind = kind


def register_error_handlers(app: FastAPI) -> None:
    """Translate ServiceError subclasses into JSON responses."""

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error_code": exc.error_code,
                "message": exc.message,
                "details": exc.details,
            },
            headers=headers,
        )
