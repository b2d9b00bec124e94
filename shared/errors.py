"""
Shared error handling for the Conditional Container service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ConditionalContainerException(Exception):
    """Base exception for Conditional Container components."""

    status_code = 400

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


class NotFoundError(ConditionalContainerException):
    """Requested object does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class ContainerNotFoundError(NotFoundError):
    """No registered container matched a lookup before its wait budget ran out."""

    def __init__(self, container_filter: Any, elapsed_ms: float):
        self.container_filter = container_filter
        self.elapsed_ms = elapsed_ms
        super().__init__(
            f"Conditional container not found after {elapsed_ms:.0f}ms",
            {"filter": _describe_filter(container_filter), "elapsed_ms": round(elapsed_ms, 2)}
        )


def _describe_filter(container_filter: Any) -> Any:
    if callable(container_filter):
        return getattr(container_filter, "__name__", "predicate")
    if isinstance(container_filter, dict):
        return {str(k): str(v) for k, v in container_filter.items()}
    return str(container_filter)
