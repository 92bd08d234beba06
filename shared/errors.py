"""
Shared error handling for the LTI Consumer services.
"""

from enum import Enum
from typing import Dict, Any, Optional
from pydantic import BaseModel

from opentelemetry import trace


class ErrorCategory(str, Enum):
    """Error categories used to decide how a failure is reported."""
    MALFORMED_INPUT = "malformed_input"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    REPLAY = "replay"
    TRANSPORT = "transport"
    INTERNAL = "internal"


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    category: ErrorCategory = ErrorCategory.INTERNAL
    details: Dict[str, Any] = {}


class ConsumerException(Exception):
    """Base exception for Consumer services."""

    category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(self, code: str, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None,
                 category: Optional[ErrorCategory] = None):
        self.code = code
        self.message = message or code
        self.details = details or {}
        if category is not None:
            self.category = category
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        """Only transport failures may succeed when the caller tries again."""
        return self.category == ErrorCategory.TRANSPORT

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        # Get trace ID from current span
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            category=self.category,
            details=self.details
        )


class ConfigurationError(ConsumerException):
    """Raised when the service is wired or configured incorrectly."""

    def __init__(self, code: str, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)
