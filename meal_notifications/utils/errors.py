from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .logging import get_logger
from .responses import ResponseBuilder

logger = get_logger()


class NotificationServiceError(Exception):
    """
    Base for errors raised by the notification service.

    Subclasses pin the HTTP status and the `error_type` reported in the
    response meta. `public_code`, when set, replaces the caller's error_code
    in the response body; the original code is still logged.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "SERVICE_ERROR"
    public_code: Optional[str] = None
    log_level: str = "ERROR"

    def __init__(self, message: str, error_code: str = "SERVICE_ERROR"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class BusinessLogicError(NotificationServiceError):
    """A rule of the notification workflow was violated, e.g. a state conflict."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "BUSINESS_ERROR"

    def __init__(self, message: str, error_code: str = "BLOC_ERROR"):
        super().__init__(message, error_code)


class AuthorizationError(NotificationServiceError):
    """Caller is not allowed to trigger the operation (bad cron secret)."""

    status_code = status.HTTP_403_FORBIDDEN
    error_type = "AUTHORIZATION_ERROR"
    public_code = "FORBIDDEN"
    log_level = "WARNING"

    def __init__(self, message: str = "Access denied", error_code: str = "AUTHZ_ERROR"):
        super().__init__(message, error_code)


class NotFoundError(NotificationServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "NOT_FOUND_ERROR"

    def __init__(
        self, message: str = "Resource not found", error_code: str = "NOT_FOUND"
    ):
        super().__init__(message, error_code)


def _format_validation_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    return [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
            "input": error.get("input"),
        }
        for error in exc.errors()
    ]


def setup_error_handlers(app: FastAPI):
    """Map service, validation and infrastructure errors to enveloped responses."""

    @app.exception_handler(NotificationServiceError)
    async def service_error_handler(request: Request, exc: NotificationServiceError):
        logger.bind(error_code=exc.error_code, path=request.url.path).log(
            exc.log_level, f"{type(exc).__name__}: {exc.message}"
        )
        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.public_code or exc.error_code,
            status_code=exc.status_code,
            meta={"error_type": exc.error_type},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")
        return ResponseBuilder.error(
            request=request,
            message=str(exc.detail),
            error_code="HTTP_ERROR",
            status_code=exc.status_code,
            meta={"http_status": exc.status_code},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        errors = _format_validation_errors(exc)
        logger.warning("Request validation failed", errors=errors)
        return ResponseBuilder.error(
            request=request,
            message="Request validation failed",
            errors=errors,
            error_code="VALIDATION_ERROR",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.opt(exception=exc).error("Database error while serving request")
        # Driver messages stay in the logs
        return ResponseBuilder.error(
            request=request,
            message="A database error occurred",
            error_code="DATABASE_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "SQLALCHEMY_ERROR"},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        logger.error(f"Value Error: {exc}")
        return ResponseBuilder.error(
            request=request,
            message=str(exc),
            error_code="VALUE_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            meta={"error_type": "VALUE_ERROR"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.opt(exception=exc).error(f"Unhandled Exception: {exc}")
        return ResponseBuilder.error(
            request=request,
            message="An internal server error occurred",
            error_code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "INTERNAL_ERROR"},
        )
