"""Read-only share links for calendars."""

import logging
from urllib.parse import quote, urlencode

from ..auth.session import Session
from ..backends.base import BackendProvider
from ..utils.exceptions import AuthorizationDenied, ProviderError

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
DEFAULT_TTL_DAYS = 30


class ShareLinkIssuer:
    """Mint a fresh, time-limited guest link on every call."""

    def __init__(
        self,
        backend: BackendProvider,
        session: Session,
        base_url: str,
        ttl_days: int = DEFAULT_TTL_DAYS,
    ):
        self.backend = backend
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.ttl_days = ttl_days

    @property
    def ttl_seconds(self) -> int:
        return self.ttl_days * SECONDS_PER_DAY

    async def create_share_link(self, calendar_id: str) -> str:
        """
        Create a guest link for a calendar.

        Raises:
            AuthenticationRequired: If nobody is signed in
            AuthorizationDenied: Without can_share
            ProviderError: If the backend cannot mint a token
        """
        user = self.session.require_user()
        if not self.session.capabilities.can_share:
            raise AuthorizationDenied("You are not allowed to share calendars")

        try:
            token = await self.backend.mint_share_token(calendar_id, self.ttl_seconds)
        except ProviderError as e:
            logger.error(f"Failed to create share link for {calendar_id}: {e}")
            raise

        logger.info(f"{user.email} shared calendar {calendar_id} for {self.ttl_days} days")
        query = urlencode({"calendarId": calendar_id})
        return f"{self.base_url}/guest/{quote(token, safe='')}?{query}"
