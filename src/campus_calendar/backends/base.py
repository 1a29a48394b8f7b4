"""Abstract base class for backend providers."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from typing import Any, Optional

Record = dict[str, Any]
AuthCallback = Callable[[Optional[Record]], None]


class AuthSubscription:
    """Handle returned by ``subscribe_auth_changes``; releases the callback."""

    def __init__(self, release: Callable[[], None]):
        self._release: Optional[Callable[[], None]] = release

    @property
    def active(self) -> bool:
        return self._release is not None

    def unsubscribe(self) -> None:
        if self._release is not None:
            self._release()
            self._release = None

    def __enter__(self) -> "AuthSubscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()


class AuthListeners:
    """Callback registry shared by backend implementations."""

    def __init__(self) -> None:
        self._callbacks: list[AuthCallback] = []

    def add(self, callback: AuthCallback) -> AuthSubscription:
        self._callbacks.append(callback)

        def release() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return AuthSubscription(release)

    def notify(self, user: Optional[Record]) -> None:
        for callback in list(self._callbacks):
            callback(user)

    def __len__(self) -> int:
        return len(self._callbacks)


class BackendProvider(ABC):
    """
    Hosted backend providing authentication, persistence and authorization.

    Every method returns raw records; callers pass them through
    ``campus_calendar.mapping.records``. Implementations map their own
    failures to ``AuthenticationRequired`` or ``ProviderError``.
    """

    @abstractmethod
    async def is_authenticated(self) -> bool:
        """Whether a session is currently active."""

    @abstractmethod
    async def get_current_user(self) -> Record:
        """
        Get the profile of the signed-in user.

        Raises:
            AuthenticationRequired: If there is no session
            ProviderError: If the profile cannot be loaded
        """

    @abstractmethod
    def subscribe_auth_changes(self, callback: AuthCallback) -> AuthSubscription:
        """
        Register a callback for sign in / sign out.

        The callback receives the new user profile, or None after sign out.
        """

    @abstractmethod
    async def sign_in(self, email: str, password: Optional[str] = None) -> Record:
        """
        Start a session and return the user profile.

        Raises:
            AuthenticationRequired: If the credentials are rejected
            ProviderError: If the backend fails
        """

    @abstractmethod
    async def sign_out(self) -> None:
        """End the current session."""

    @abstractmethod
    async def list_calendars(self) -> list[Record]:
        """List every calendar the session can read."""

    @abstractmethod
    async def list_event_types(self) -> list[Record]:
        """List event types."""

    @abstractmethod
    async def list_events(
        self, calendar_id: str, range_start: datetime, range_end: datetime
    ) -> list[Record]:
        """List events of one calendar overlapping the range."""

    @abstractmethod
    async def list_events_for_university(
        self, university_id: str, range_start: datetime, range_end: datetime
    ) -> list[Record]:
        """
        List events of every calendar of a university overlapping the range.

        Records embed their calendar (``calendars``) and event type
        (``event_types``) rows when the backend can provide them.
        """

    @abstractmethod
    async def create_event(self, fields: dict[str, Any]) -> Record:
        """Create an event from canonical fields and return the stored record."""

    @abstractmethod
    async def update_event(self, event_id: str, fields: dict[str, Any]) -> Record:
        """Update only the given canonical fields and return the stored record."""

    @abstractmethod
    async def delete_event(self, event_id: str) -> None:
        """Delete an event."""

    @abstractmethod
    async def mint_share_token(self, calendar_id: str, ttl_seconds: int) -> str:
        """Mint a read-only access token for a calendar."""
