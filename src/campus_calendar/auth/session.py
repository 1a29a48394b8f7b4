"""Session state: the single source of truth for the signed-in user."""

import logging
from collections.abc import Callable
from typing import Optional

from ..backends.base import AuthSubscription, BackendProvider, Record
from ..mapping.records import normalize_user
from ..models.user import User
from ..utils.exceptions import AuthenticationRequired, MalformedRecord, ProviderError
from .capabilities import READ_ONLY, CapabilitySet, resolve_capabilities

logger = logging.getLogger(__name__)

UserListener = Callable[[Optional[User]], None]


class Subscription:
    """Listener registration; unsubscribes on ``unsubscribe()`` or context exit."""

    def __init__(self, listeners: list[UserListener], listener: UserListener):
        self._listeners = listeners
        self._listener = listener

    @property
    def active(self) -> bool:
        return self._listener in self._listeners

    def unsubscribe(self) -> None:
        if self._listener in self._listeners:
            self._listeners.remove(self._listener)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()


class Session:
    """
    Holds the authenticated user for the lifetime of the app.

    ``user`` is written only by the backend's auth change subscription and
    by ``login``/``logout``. Views observe changes through ``subscribe``.

    Usage::

        async with Session(backend) as session:
            ...
    """

    def __init__(self, backend: BackendProvider):
        self.backend = backend
        self._user: Optional[User] = None
        self._listeners: list[UserListener] = []
        self._auth_subscription: Optional[AuthSubscription] = None

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    @property
    def capabilities(self) -> CapabilitySet:
        if self._user is None:
            return READ_ONLY
        return resolve_capabilities(self._user.role)

    def require_user(self) -> User:
        """
        Return the signed-in user.

        Raises:
            AuthenticationRequired: If nobody is signed in
        """
        if self._user is None:
            raise AuthenticationRequired("Not authenticated")
        return self._user

    def subscribe(self, listener: UserListener) -> Subscription:
        """Register a listener called with the new user on every change."""
        self._listeners.append(listener)
        return Subscription(self._listeners, listener)

    def _set_user(self, user: Optional[User]) -> None:
        if user == self._user:
            return
        self._user = user
        if user:
            logger.info(f"Signed in as {user.email} ({user.role.value})")
        else:
            logger.info("Signed out")
        for listener in list(self._listeners):
            listener(user)

    def _on_auth_change(self, raw: Optional[Record]) -> None:
        if raw is None:
            self._set_user(None)
            return
        try:
            user = normalize_user(raw)
        except MalformedRecord as e:
            logger.error(f"Rejected user profile from auth change: {e}")
            self._set_user(None)
            return
        self._set_user(user)

    async def restore(self) -> Optional[User]:
        """
        Restore an existing backend session at startup.

        Returns:
            The restored user, or None when there is no valid session
        """
        try:
            if not await self.backend.is_authenticated():
                self._set_user(None)
                return None
            raw = await self.backend.get_current_user()
        except (AuthenticationRequired, ProviderError) as e:
            logger.warning(f"Session restore failed: {e}")
            self._set_user(None)
            return None
        self._set_user(normalize_user(raw))
        return self._user

    async def login(self, email: str, password: Optional[str] = None) -> User:
        """
        Sign in and make the profile the current user.

        Raises:
            AuthenticationRequired: If the backend rejects the credentials
            ProviderError: If the backend fails
            MalformedRecord: If the profile is unusable (e.g. unknown role)
        """
        raw = await self.backend.sign_in(email, password)
        user = normalize_user(raw)
        self._set_user(user)
        return user

    async def logout(self) -> None:
        """Sign out; the local user is cleared even if the backend call fails."""
        try:
            await self.backend.sign_out()
        finally:
            self._set_user(None)

    def attach(self) -> AuthSubscription:
        """Follow the backend's auth changes until ``detach``."""
        if self._auth_subscription is None or not self._auth_subscription.active:
            self._auth_subscription = self.backend.subscribe_auth_changes(self._on_auth_change)
        return self._auth_subscription

    def detach(self) -> None:
        if self._auth_subscription is not None:
            self._auth_subscription.unsubscribe()
            self._auth_subscription = None

    async def __aenter__(self) -> "Session":
        self.attach()
        try:
            await self.restore()
        except BaseException:
            self.detach()
            raise
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.detach()
