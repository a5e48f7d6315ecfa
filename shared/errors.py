"""
Shared error handling for the Ledger Paywall Access Layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class AccessLayerException(Exception):
    """Base exception for Access Layer services."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            trace_id=current_trace_id(),
            code=self.code,
            message=self.message,
            details=self.details
        )


def current_trace_id() -> Optional[str]:
    """Hex trace id of the recording span, if any."""
    current_span = trace.get_current_span()
    if current_span and current_span.is_recording():
        span_context = current_span.get_span_context()
        if span_context.trace_id != 0:
            return f"{span_context.trace_id:032x}"
    return None


class MissingIdentityError(AccessLayerException):
    """No credential was presented with the request."""

    def __init__(self, message: str = "Missing identity", details: Optional[Dict[str, Any]] = None):
        super().__init__("MISSING_IDENTITY", message, details)


class InvalidKeyError(AccessLayerException):
    """Presented public key is malformed or has the wrong length."""

    def __init__(self, message: str = "Invalid public key", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_KEY", message, details)


class LedgerQueryError(AccessLayerException):
    """
    The ledger could not be read, or returned rows that cannot be trusted.

    Distinct from a zero entitlement: callers must surface this as a server
    failure, never as "not paid".
    """

    def __init__(self, message: str = "Ledger query failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("LEDGER_QUERY_FAILED", message, details)


class CacheCorruptedError(AccessLayerException):
    """A cached decision holds a value that does not parse as seconds."""

    def __init__(self, message: str = "Cached decision is corrupted", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_CORRUPTED", message, details)


class CacheUnavailableError(AccessLayerException):
    """The decision cache transport failed."""

    def __init__(self, message: str = "Decision cache unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_UNAVAILABLE", message, details)


class ConfigurationError(AccessLayerException):
    """Startup configuration is unusable."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)
