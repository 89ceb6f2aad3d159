"""
Shared error handling for the ISPyB Sessions service.
"""

from typing import Dict, Any, Optional

from opentelemetry import trace
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


def current_trace_id() -> Optional[str]:
    """Hex trace id of the active span, if one is recording."""
    current_span = trace.get_current_span()
    if current_span and current_span.is_recording():
        span_context = current_span.get_span_context()
        if span_context.trace_id != 0:
            return f"{span_context.trace_id:032x}"
    return None


class SessionsServiceException(Exception):
    """Base exception for the Sessions service.

    ``extensions`` is picked up by graphql-core when the exception surfaces
    from a resolver, so GraphQL errors carry ``extensions.code``.
    """

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def extensions(self) -> Dict[str, Any]:
        return {"code": self.code}

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            trace_id=current_trace_id(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class PolicyDeniedError(SessionsServiceException):
    """The policy decision service explicitly denied the operation."""

    def __init__(self, message: str = "Access denied", details: Optional[Dict[str, Any]] = None):
        super().__init__("ACCESS_DENIED", message, details)


class PolicyUnreachableError(SessionsServiceException):
    """The policy decision service could not be reached or answered nonsense."""

    def __init__(self, message: str = "Authorization service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("POLICY_SERVICE_ERROR", message, details)


class StorageError(SessionsServiceException):
    """Database errors. Details are logged, never returned to the caller."""

    def __init__(self, message: str = "Internal error", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORAGE_ERROR", message, details)


class FieldParseError(SessionsServiceException):
    """A stored value could not be converted to its API type."""

    def __init__(self, field: str, value: Any):
        super().__init__(
            "FIELD_PARSE_ERROR",
            f"Invalid value for {field}",
            {"field": field, "value": str(value)}
        )


class RequestValidationError(SessionsServiceException):
    """Query arguments failed validation."""

    def __init__(self, message: str = "Invalid arguments", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class ConfigurationError(SessionsServiceException):
    """Startup-time configuration or connectivity failure."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)
