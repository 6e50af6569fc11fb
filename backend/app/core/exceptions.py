# backend/app/core/exceptions.py
"""
Domain exceptions raised by the service layer.
Routers translate them into HTTP responses via raise_http_error().
"""

from typing import Any, List, Optional

from fastapi import HTTPException, status


class NutritionTrackerError(Exception):
    """Base class for service errors"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(NutritionTrackerError):
    """Raised when a resource does not exist or belongs to another user."""

    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(NutritionTrackerError):
    """Raised when input violates a business rule."""

    status_code = status.HTTP_400_BAD_REQUEST


class ServiceError(NutritionTrackerError):
    """Raised when a persistence or aggregation step fails."""


def raise_http_error(error: NutritionTrackerError) -> None:
    """Re-raise a service error as the matching HTTPException"""
    detail: Any = error.message
    if error.details:
        detail = {"error": error.message, "details": error.details}
    raise HTTPException(status_code=error.status_code, detail=detail) from error
