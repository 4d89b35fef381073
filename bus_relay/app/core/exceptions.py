"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes, the relay error taxonomy and global
exception handlers.
"""

import logging

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("bus_relay")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


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


class DriverAuthError(AppException):
    """Raised when a driver registration carries a missing or invalid token."""

    def __init__(self, message: str = "Driver authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


# Relay event errors. These never leave the socket handler that raised them.

class UnregisteredSender(AppException):
    """Event received from a connection with no driver session."""

    def __init__(self, connection_id: str, event: str):
        super().__init__(
            message=f"Connection {connection_id} is not a registered driver",
            error_code="ERR_RELAY_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"connection_id": connection_id, "event": event}
        )


class InvalidCoordinate(AppException):
    """Malformed location report."""

    def __init__(self, message: str = "Invalid location report", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_RELAY_002",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class TripNotActive(AppException):
    """Location report from a driver whose trip is not running."""

    def __init__(self, bus_id: str):
        super().__init__(
            message=f"Bus {bus_id} has no active trip",
            error_code="ERR_RELAY_003",
            status_code=status.HTTP_409_CONFLICT,
            details={"bus_id": bus_id}
        )


class InvalidEvent(AppException):
    """Frame that is not a known event or whose payload has the wrong shape."""

    def __init__(self, message: str = "Invalid event", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_RELAY_004",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class StoreUnavailable(AppException):
    """Trip Store read or write failed."""

    def __init__(self, operation: str, cause: Exception = None):
        details = {"operation": operation}
        if cause is not None:
            details["cause"] = type(cause).__name__
        super().__init__(
            message=f"Trip store unavailable during {operation}",
            error_code="ERR_STORE_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details
        )


class PrunerCycleFailure(AppException):
    """History pruning failed for a single trip."""

    def __init__(self, trip_id: int, cause: Exception = None):
        super().__init__(
            message=f"History pruning failed for trip {trip_id}",
            error_code="ERR_PRUNE_001",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"trip_id": trip_id, "cause": type(cause).__name__ if cause else None}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_payload()
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
            "details": {
                "errors": exc.errors()
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
