"""
Shared error handling for the dataset gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class GatewayException(Exception):
    """Base exception for gateway services."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class AuthenticationError(GatewayException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class AuthorizationError(GatewayException):
    """Authorization-related errors."""

    status_code = 403

    def __init__(self, message: str = "Authorization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHORIZATION_ERROR", message, details)


class NotFoundError(GatewayException):
    """Unknown route or resource."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class MethodNotAllowedError(GatewayException):
    """HTTP method does not match the API configuration."""

    status_code = 405

    def __init__(self, message: str = "Method not allowed", details: Optional[Dict[str, Any]] = None):
        super().__init__("METHOD_NOT_ALLOWED", message, details)


class ValidationError(GatewayException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class ExternalServiceError(GatewayException):
    """External service errors."""

    status_code = 502

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)


class ObjectNotFoundError(ExternalServiceError):
    """Requested object does not exist in the store."""

    def __init__(self, service: str, message: str = "Object not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(service, message, details)
        self.code = "OBJECT_NOT_FOUND"


class DatasetUnavailable(GatewayException):
    """The authoritative store could not supply the dataset."""

    def __init__(self, dataset_id: str, reason: str = "Failed to fetch API data"):
        super().__init__("DATASET_UNAVAILABLE", reason, {"dataset_id": dataset_id})
        self.dataset_id = dataset_id


class CacheCorrupt(GatewayException):
    """Metadata claims freshness but the cached payload cannot be read."""

    def __init__(self, dataset_id: str, reason: str = "Cached payload unreadable"):
        super().__init__("CACHE_CORRUPT", reason, {"dataset_id": dataset_id})
        self.dataset_id = dataset_id


class FilterError(GatewayException):
    """Filter evaluation reached a state it cannot degrade from."""

    def __init__(self, message: str = "Filter evaluation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("FILTER_ERROR", message, details)
