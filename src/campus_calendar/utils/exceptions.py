"""Custom exceptions for Campus Calendar."""

from typing import Optional


class CampusCalendarError(Exception):
    """Base exception for campus calendar errors."""


class AuthenticationRequired(CampusCalendarError):
    """Raised when there is no valid session."""


class MalformedRecord(CampusCalendarError):
    """Raised when a backend record is missing a required field."""


class UnknownRoleError(MalformedRecord):
    """Raised when a role tag is outside the closed role set."""


class AuthorizationDenied(CampusCalendarError):
    """Raised when an operation is attempted without the required capability."""


class ProviderError(CampusCalendarError):
    """Raised when the backend provider fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class StaleResponse(CampusCalendarError):
    """A fetch result that arrived after a superseding state change.

    Never raised to callers; instances are handed to instrumentation hooks.
    """

    def __init__(self, message: str, generation: int, current_generation: int):
        super().__init__(message)
        self.generation = generation
        self.current_generation = current_generation


class InvalidDraft(CampusCalendarError):
    """Raised when an event draft cannot be dispatched."""


class ConfigurationError(CampusCalendarError):
    """Raised when configuration is invalid."""
