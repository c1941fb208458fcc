# backend/core/error_handling.py

"""
Error types and handlers shared by all API routes.

Every domain error carries a stable ``error_code`` so that clients can
show the specific reason a request failed instead of a generic message.
"""

from typing import Callable, Dict, Any, Optional
from functools import wraps
import logging
import traceback

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, DataError, OperationalError

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_detail(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class NotFoundError(APIError):
    """Resource not found error"""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource} with identifier {identifier} not found",
            details={"resource": resource, "identifier": str(identifier)},
        )


class ConflictError(APIError):
    """Resource conflict error"""

    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details)


class APIValidationError(APIError):
    """Input validation error - named to avoid a collision with Pydantic's ValidationError"""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            details={"validation_errors": errors} if errors else {},
        )


class TransientBackendError(APIError):
    """The database could not be reached or timed out"""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "BACKEND_UNAVAILABLE"

    def __init__(
        self,
        message: str = "Database service temporarily unavailable",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, details=details)


def _integrity_detail(e: IntegrityError) -> Dict[str, Any]:
    error_info = str(e.orig).lower() if e.orig else str(e).lower()
    if "unique" in error_info or "duplicate" in error_info:
        return {
            "status_code": status.HTTP_409_CONFLICT,
            "message": "Resource already exists with the provided unique values",
            "error_code": ConflictError.error_code,
        }
    # Check constraints such as a negative balance or an over-redeemed reward
    return {
        "status_code": status.HTTP_400_BAD_REQUEST,
        "message": "Database constraint violation",
        "error_code": "INTEGRITY_ERROR",
    }


def to_http_exception(e: Exception, func_name: str) -> HTTPException:
    """Translate an exception escaping a route into the HTTP error returned to the client"""
    if isinstance(e, HTTPException):
        return e

    if isinstance(e, APIError):
        logger.warning(
            f"API Error in {func_name}: {e.message}",
            extra={"status_code": e.status_code, "error_code": e.error_code},
        )
        return HTTPException(status_code=e.status_code, detail=e.to_detail())

    if isinstance(e, IntegrityError):
        logger.error(f"Database integrity error in {func_name}: {str(e.orig)}")
        info = _integrity_detail(e)
        return HTTPException(
            status_code=info["status_code"],
            detail={"message": info["message"], "error_code": info["error_code"]},
        )

    if isinstance(e, DataError):
        logger.error(f"Data error in {func_name}: {str(e.orig)}")
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Invalid data format or type", "error_code": "VALIDATION_ERROR"},
        )

    if isinstance(e, OperationalError):
        logger.error(f"Database operational error in {func_name}: {str(e.orig)}")
        return HTTPException(
            status_code=TransientBackendError.status_code,
            detail=TransientBackendError().to_detail(),
        )

    logger.error(f"Unexpected error in {func_name}: {str(e)}\n{traceback.format_exc()}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": "An unexpected error occurred", "error_code": "INTERNAL_ERROR"},
    )


def handle_api_errors(func: Callable) -> Callable:
    """
    Decorator for async routes: domain errors and database errors become
    HTTP errors with a stable ``error_code``.

    Usage:
        @router.get("/rewards/{reward_id}")
        @handle_api_errors
        async def get_reward(reward_id: int, db: AsyncSession = Depends(get_async_db)):
            ...
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            http_exc = to_http_exception(e, func.__name__)
            if http_exc is e:
                raise
            raise http_exc from e

    return wrapper


async def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Handle API errors raised outside decorated routes"""
    logger.warning(f"{type(exc).__name__} at {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_detail(), "path": str(request.url.path)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app"""
    app.add_exception_handler(APIError, handle_api_error)
