"""
Domain error taxonomy.

Store mutations raise these to the immediate caller; the HTTP layer maps them
to status codes in ``app.middleware.error_handler``.
"""
from typing import Any, Optional


class AgriLensError(Exception):
    """Base class for domain errors."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "detail": self.message,
            "details": self.details,
        }


class NotFoundError(AgriLensError):
    """Operation targets an id that does not exist."""
    code = "not_found"
    status_code = 404


class CapacityExceededError(AgriLensError):
    """Operation would breach a configured maximum."""
    code = "capacity_exceeded"
    status_code = 409


class ProtectedError(AgriLensError):
    """Attempt to remove a reserved, non-deletable record."""
    code = "protected"
    status_code = 409


class InvalidFormatError(AgriLensError, ValueError):
    """Malformed import document or malformed geometry."""
    code = "invalid_format"
    status_code = 400


class StorageUnavailableError(AgriLensError):
    """The persistence adapter failed to read or write."""
    code = "storage_unavailable"
    status_code = 503
