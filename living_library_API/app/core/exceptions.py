# exceptions.py
# Description: Exception hierarchy for Living Library operations
#
"""
Living Library Exception Hierarchy
==================================

Every error raised by the service layer carries an explicit ``ErrorKind``.
The API layer maps the kind to an HTTP status code; it never inspects the
error message to decide how to respond.

Exception Categories:
- LibraryError: Base exception carrying kind, operation and context
- AuthenticationError: Missing/invalid credentials or login links
- InputError / PIIDetectedError: Request content rejected by validation
- ForbiddenError: Authenticated user may not act on the resource
- NotFoundError: Resource lookup miss
- UpstreamServiceError: An AI provider or other dependency is unavailable
- SearchFailedError: The advanced search pipeline failed
- StorageError: Media storage failures
"""

from enum import Enum
from typing import Optional, Any, Dict, List


class ErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    SEARCH_FAILED = "search_failed"
    STORAGE = "storage"
    INTERNAL = "internal"


ERROR_KIND_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.VALIDATION: 400,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UPSTREAM_UNAVAILABLE: 503,
    ErrorKind.SEARCH_FAILED: 400,
    ErrorKind.STORAGE: 500,
    ErrorKind.INTERNAL: 500,
}


class LibraryError(Exception):
    """
    Base exception for all Living Library errors.

    Attributes:
        kind: The ErrorKind used to choose the HTTP response
        operation: The operation that failed (e.g., "create_fragment", "embed")
        context: Additional context about the error (IDs, parameters, etc.)
        original_error: The original exception that caused this error (if any)
    """
    default_kind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.operation = operation
        self.context = context or {}
        self.original_error = original_error

    @property
    def status_code(self) -> int:
        return ERROR_KIND_STATUS[self.kind]

    def __str__(self) -> str:
        parts = [self.message]

        if self.operation:
            parts.append(f"Operation: {self.operation}")

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"Context: {context_str}")

        if self.original_error:
            parts.append(f"Caused by: {type(self.original_error).__name__}: {self.original_error}")

        return " | ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": type(self).__name__,
            "kind": self.kind.value,
            "message": self.message,
            "operation": self.operation,
            "context": self.context,
            "original_error": str(self.original_error) if self.original_error else None
        }


class AuthenticationError(LibraryError):
    default_kind = ErrorKind.AUTHENTICATION


class InputError(LibraryError, ValueError):
    """Request content failed domain validation."""
    default_kind = ErrorKind.VALIDATION

    def __init__(self, message: str, details: Any = None, **kwargs):
        super().__init__(message, **kwargs)
        self.details = details


class PIIDetectedError(InputError):
    """Content contains personally identifiable information and was not stored."""

    def __init__(self, detections: List[Dict[str, Any]], **kwargs):
        super().__init__("PII detected in content", details=detections, **kwargs)
        self.detections = detections


class ForbiddenError(LibraryError):
    default_kind = ErrorKind.FORBIDDEN


class NotFoundError(LibraryError):
    default_kind = ErrorKind.NOT_FOUND


class UpstreamServiceError(LibraryError):
    """
    An external dependency (AI provider, webhook) failed or is unreachable.
    """
    default_kind = ErrorKind.UPSTREAM_UNAVAILABLE

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if provider:
            context['provider'] = provider
        super().__init__(message, context=context, **kwargs)
        self.provider = provider


class SearchFailedError(LibraryError):
    default_kind = ErrorKind.SEARCH_FAILED

    def __init__(self, message: str = "Search failed", query: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if query:
            context['query'] = query[:100] + "..." if len(query) > 100 else query
        super().__init__(message, operation="advanced_search", context=context, **kwargs)


class StorageError(LibraryError):
    default_kind = ErrorKind.STORAGE

#
# End of exceptions.py
########################################################################################################################
