"""
Error taxonomy and response rendering for the payments API
"""

import uuid
import traceback
import logging
from typing import Optional
from datetime import datetime
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import get_settings

logger = logging.getLogger(__name__)


class ErrorContext:
    """Request details attached to every logged error"""

    def __init__(self, request: Request):
        self.request_id = str(uuid.uuid4())
        self.request = request
        self.endpoint = str(request.url.path)
        self.method = request.method
        self.client_ip = self._get_client_ip()
        self.timestamp = datetime.utcnow()

    def _get_client_ip(self) -> Optional[str]:
        """Extract client IP from proxy headers or the socket"""
        if "x-forwarded-for" in self.request.headers:
            return self.request.headers["x-forwarded-for"].split(",")[0].strip()
        elif "x-real-ip" in self.request.headers:
            return self.request.headers["x-real-ip"]
        elif self.request.client:
            return self.request.client.host
        return None


class AppError(Exception):
    """Base class for errors that map onto an HTTP status"""
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class ProductNotFoundError(ValidationError):
    code = "PRODUCT_NOT_FOUND"


class SignatureMismatchError(AppError):
    """Gateway callback signature did not match; never retried automatically"""
    status_code = 400
    code = "INVALID_SIGNATURE"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class InvalidTransitionError(ConflictError):
    code = "INVALID_STATUS_TRANSITION"


class GatewayUnavailableError(AppError):
    """Payment gateway could not be reached or answered badly"""
    status_code = 502
    code = "GATEWAY_UNAVAILABLE"


class GatewayTimeoutError(GatewayUnavailableError):
    """Payment gateway did not answer in time; safe for the client to retry"""
    status_code = 504
    code = "GATEWAY_TIMEOUT"


class DatabaseError(AppError):
    status_code = 500
    code = "DATABASE_ERROR"


class ErrorHandler:
    """Builds the JSON error body shared by every failing endpoint"""

    @staticmethod
    def create_error_response(
        error_context: ErrorContext,
        error: Exception,
        status_code: int = 500,
        error_code: Optional[str] = None,
        include_details: bool = False
    ) -> JSONResponse:
        content = {
            "success": False,
            "error": ErrorHandler._get_user_friendly_message(error),
            "code": error_code or ErrorHandler._get_error_code(error),
            "request_id": error_context.request_id,
            "timestamp": error_context.timestamp.isoformat()
        }

        if include_details:
            content["details"] = {
                "original_error": str(error),
                "error_type": type(error).__name__,
                "stack_trace": traceback.format_exc()
            }

        ErrorHandler._log_error(error_context, error, status_code)

        return JSONResponse(status_code=status_code, content=content)

    @staticmethod
    def _get_error_code(error: Exception) -> str:
        if isinstance(error, AppError):
            return error.code
        return "INTERNAL_ERROR"

    @staticmethod
    def _get_user_friendly_message(error: Exception) -> str:
        if isinstance(error, DatabaseError):
            return "A database error occurred. Please try again later."
        elif isinstance(error, AppError):
            return error.message
        return "An unexpected error occurred. Please try again later."

    @staticmethod
    def _log_error(error_context: ErrorContext, error: Exception, status_code: int):
        log = logger.error if status_code >= 500 else logger.warning
        log(
            f"Error {error_context.request_id}: {type(error).__name__} in {error_context.method} {error_context.endpoint}",
            extra={
                "request_id": error_context.request_id,
                "endpoint": error_context.endpoint,
                "method": error_context.method,
                "status_code": status_code,
                "client_ip": error_context.client_ip,
                "error_type": type(error).__name__,
                "error_message": str(error)
            },
            exc_info=status_code >= 500
        )


def describe_validation_errors(errors) -> str:
    """One line naming each rejected field, e.g. 'packageData.selectedMonths: Input should be a valid integer'"""
    problems = []
    for err in errors:
        location = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path"))
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "Invalid request: " + "; ".join(problems)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the application error handlers to a FastAPI app"""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return ErrorHandler.create_error_response(
            ErrorContext(request), exc, exc.status_code,
            include_details=get_settings().debug and exc.status_code >= 500
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return ErrorHandler.create_error_response(
            ErrorContext(request), ValidationError(describe_validation_errors(exc.errors())), 400
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        return ErrorHandler.create_error_response(
            ErrorContext(request), exc, 500,
            include_details=get_settings().debug
        )
