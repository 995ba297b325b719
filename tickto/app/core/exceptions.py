"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
Every error body carries ``error_code``, ``message``, ``error`` and ``details``.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("tickto.errors")


class AppException(Exception):
    """Base application exception."""
    
    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    @property
    def error(self) -> str:
        return type(self).__name__


class ValidationError(AppException):
    """Raised when query parameters are missing or malformed."""
    
    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_400",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class ReferenceCoercionError(AppException):
    """Raised when a stored identifier cannot be turned into a store reference."""
    
    def __init__(self, value: Any, target: str = "reference"):
        super().__init__(
            message=f"Cannot coerce {value!r} into a {target}",
            error_code="ERR_REFERENCE_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"value": str(value), "target": target}
        )


InvalidReference = ReferenceCoercionError


class StoreUnavailable(AppException):
    """Raised when the trip store cannot be reached or does not answer in time."""
    
    def __init__(self, reason: str = "unavailable"):
        # The reason is kept for logs only, never sent to the client
        self.reason = reason
        super().__init__(
            message="The service is temporarily unavailable",
            error_code="ERR_STORE_503",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


class PartialReconciliationFailure(AppException):
    """
    Recorded when one status rule could not be applied.
    
    Collected on the reconciliation report and logged; never raised to a caller.
    """
    
    def __init__(self, rule: str, cause: Exception):
        self.rule = rule
        self.cause = cause
        super().__init__(
            message=f"Status rule '{rule}' failed: {type(cause).__name__}",
            error_code="ERR_RECONCILE_001",
            details={"rule": rule}
        )


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""
    
    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""
    
    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class AuthenticationError(AppException):
    """Raised for authentication failures."""
    
    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    if isinstance(exc, StoreUnavailable):
        logger.error("Store unavailable on %s: %s", request.url.path, exc.reason)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "error": exc.error,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        500: "ERR_INTERNAL_SERVER"
    }
    
    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")
    
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "error": "HTTPException",
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "error": "RequestValidationError",
            "details": {
                "errors": [
                    {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
                    for e in exc.errors()
                ]
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s", request.url.path, exc_info=exc)
    
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "error": "InternalServerError",
            "details": {}
        }
    )
