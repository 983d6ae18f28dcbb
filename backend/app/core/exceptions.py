"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


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


class ValidationFailureError(AppException):
    """Raised for malformed input that passed schema validation."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class ProductNotFoundError(AppException):
    """Raised when an order references products that do not exist. Lists every missing id."""

    def __init__(self, missing_ids: List[int]):
        self.missing_ids = sorted(set(missing_ids))
        super().__init__(
            message=f"The following products were not found: {', '.join(str(i) for i in self.missing_ids)}",
            error_code="ERR_PRODUCT_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"missing_product_ids": self.missing_ids}
        )


class InsufficientStockError(AppException):
    """
    Raised when one or more order lines exceed available stock.

    ``lines`` holds one dict per offending product:
    ``{"product_id", "product_name", "requested", "available"}``.
    """

    def __init__(self, lines: List[Dict[str, Any]]):
        self.lines = lines
        summary = "; ".join(
            f"{line.get('product_name') or 'Product ' + str(line['product_id'])} "
            f"(requested: {line['requested']}, available: {line['available']})"
            for line in lines
        )
        super().__init__(
            message=f"Insufficient stock for the following items: {summary}",
            error_code="ERR_STOCK_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"lines": lines}
        )


class InvalidTransitionError(AppException):
    """Raised when a delivery status change is not in the transition table."""

    def __init__(self, current_status: Any, requested_status: Any, allowed: Optional[List[Any]] = None):
        current = getattr(current_status, "value", current_status)
        requested = getattr(requested_status, "value", requested_status)
        super().__init__(
            message=f"Cannot change status from {current} to {requested}. Invalid status transition.",
            error_code="ERR_ORDER_STATUS_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={
                "current_status": current,
                "requested_status": requested,
                "allowed_statuses": [getattr(s, "value", s) for s in (allowed or [])],
            }
        )


class AlreadyPaidError(AppException):
    """Raised when recording a payment for an order that is already paid."""

    def __init__(self, order_id: int):
        super().__init__(
            message="Order is already marked as paid",
            error_code="ERR_PAYMENT_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"order_id": order_id}
        )


class OrderTrackingError(AppException):
    """
    Raised by public order tracking.

    Unknown order numbers and identity mismatches share this exact message
    so callers cannot probe which order numbers exist.
    """

    def __init__(self):
        super().__init__(
            message="No order matches the provided details",
            error_code="ERR_TRACKING_001",
            status_code=status.HTTP_404_NOT_FOUND
        )


class SequenceAllocationError(AppException):
    """Raised when a reference number cannot be allocated after retries."""

    def __init__(self, scope: str, reason: str = "retry budget exhausted"):
        super().__init__(
            message=f"Could not allocate a reference number for {scope}: {reason}",
            error_code="ERR_SEQUENCE_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"scope": scope}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
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
        409: "ERR_CONFLICT",
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
                "errors": [
                    {key: value for key, value in error.items() if key != "ctx"}
                    for error in exc.errors()
                ]
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "exception_type": type(exc).__name__}
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
