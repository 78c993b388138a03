"""
Shared error handling for the Climate Risk API.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    success: bool = False
    code: str
    message: str
    details: Dict[str, Any] = {}


class ClimateApiException(Exception):
    """Base exception for Climate Risk API services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(ClimateApiException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(ClimateApiException):
    """Requested resource does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class DataStoreError(ClimateApiException):
    """Spatial store unreachable or a query failed."""

    status_code = 503

    def __init__(self, message: str = "Data store error", details: Optional[Dict[str, Any]] = None):
        super().__init__("DATA_STORE_ERROR", message, details)


class CacheWarmError(ClimateApiException):
    """Cache warming could not complete its metadata phase."""

    status_code = 500

    def __init__(self, message: str = "Cache warming failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_WARM_ERROR", message, details)
