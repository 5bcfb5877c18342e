"""Standardized exception hierarchy for the ride tracking core."""

from typing import Any


class TrackingError(Exception):
    """Base exception for all tracking errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TransientUpstreamFailure(TrackingError):
    """Errors from an upstream collaborator that may succeed on retry."""

    pass


class NetworkError(TransientUpstreamFailure):
    """Network-related transient errors (timeout, connection refused)."""

    pass


class ServiceUnavailableError(TransientUpstreamFailure):
    """External service temporarily unavailable (5xx responses)."""

    pass


class LocationSourceError(TransientUpstreamFailure):
    """GPS source reported an error (timeout, position unavailable)."""

    def __init__(
        self,
        message: str,
        code: str = "position_unavailable",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.code = code


class PermissionDenied(LocationSourceError):
    """Location access was refused by the platform."""

    def __init__(
        self,
        message: str = "Location permission denied",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code="permission_denied", details=details)


class PermanentError(TrackingError):
    """Errors that will not succeed on retry."""

    pass


class MalformedInput(PermanentError):
    """Invalid coordinate or payload."""

    pass


class NotFoundError(PermanentError):
    """Requested entity does not exist."""

    pass


class InvalidTransition(PermanentError):
    """Operation not allowed in the current session state."""

    pass


class ConfigurationError(PermanentError):
    """Missing or invalid configuration."""

    pass


class FatalError(TrackingError):
    """Critical errors requiring immediate shutdown."""

    pass
