"""Hosted backend provider over a PostgREST-style HTTP API."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

import requests

from ..mapping.records import event_fields_to_record
from ..utils.date_utils import to_iso
from ..utils.exceptions import AuthenticationRequired, ConfigurationError, ProviderError
from .base import AuthCallback, AuthListeners, AuthSubscription, BackendProvider, Record

logger = logging.getLogger(__name__)

TOKEN_PATH = "/auth/v1/token"

UNIVERSITY_EVENT_SELECT = (
    "*,calendars!inner(name,category,university_id),event_types(name,color)"
)


class RestBackend(BackendProvider):
    """
    Backend reached through its REST gateway (``/auth/v1`` and ``/rest/v1``).

    Calls are made with ``requests`` in a worker thread so the dashboard's
    event loop is never blocked.
    """

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str],
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize REST backend.

        Args:
            base_url: Project URL, e.g. https://xyz.supabase.co
            api_key: Public (anon) API key
            timeout: Per-request timeout in seconds
            session: Optional requests session (for connection reuse)

        Raises:
            ConfigurationError: If url or key is missing
        """
        if not base_url or not api_key:
            raise ConfigurationError("CAMPUS_BACKEND_URL and CAMPUS_BACKEND_API_KEY are required")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.http = session or requests.Session()
        self._access_token: Optional[str] = None
        self._listeners = AuthListeners()

    def _headers(self, prefer: Optional[str] = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self._access_token or self.api_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text or resp.reason
        if isinstance(body, dict):
            return str(
                body.get("message")
                or body.get("error_description")
                or body.get("msg")
                or body.get("error")
                or body
            )
        return str(body)

    def _request_sync(
        self,
        method: str,
        path: str,
        params: Any = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.http.request(
                method,
                url,
                headers=self._headers(prefer),
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ProviderError(f"{method} {path} failed: {e}") from e

        # The password grant answers bad credentials with 400 invalid_grant
        if resp.status_code == 401 or (resp.status_code == 400 and path == TOKEN_PATH):
            raise AuthenticationRequired(self._error_message(resp))
        if not resp.ok:
            raise ProviderError(self._error_message(resp), status_code=resp.status_code)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(f"{method} {path} returned invalid JSON") from e

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        logger.debug(f"{method} {path}")
        return await asyncio.to_thread(self._request_sync, method, path, **kwargs)

    @staticmethod
    def _single(rows: Any, what: str) -> Record:
        if isinstance(rows, list):
            if not rows:
                raise ProviderError(f"{what} returned no rows", status_code=404)
            return rows[0]
        if isinstance(rows, dict):
            return rows
        raise ProviderError(f"{what} returned an unexpected payload")

    @staticmethod
    def _range_params(range_start: datetime, range_end: datetime) -> list[tuple[str, str]]:
        # Overlap: starts before the window ends and ends after it starts
        return [
            ("start_time", f"lte.{to_iso(range_end)}"),
            ("end_time", f"gte.{to_iso(range_start)}"),
            ("order", "start_time"),
        ]

    # Authentication

    async def is_authenticated(self) -> bool:
        return self._access_token is not None

    async def get_current_user(self) -> Record:
        if self._access_token is None:
            raise AuthenticationRequired("Not authenticated")
        auth_user = await self._request("GET", "/auth/v1/user")
        user_id = (auth_user or {}).get("id")
        if not user_id:
            raise AuthenticationRequired("Session has no user")
        rows = await self._request(
            "GET",
            "/rest/v1/profiles",
            params=[("select", "*,universities(name)"), ("id", f"eq.{user_id}")],
        )
        return self._single(rows, "Profile lookup")

    def subscribe_auth_changes(self, callback: AuthCallback) -> AuthSubscription:
        return self._listeners.add(callback)

    async def sign_in(self, email: str, password: Optional[str] = None) -> Record:
        if not password:
            raise AuthenticationRequired("Password is required")
        body = await self._request(
            "POST",
            TOKEN_PATH,
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        token = (body or {}).get("access_token")
        if not token:
            raise AuthenticationRequired("Sign in returned no access token")
        self._access_token = token
        profile = await self.get_current_user()
        self._listeners.notify(profile)
        return profile

    async def sign_out(self) -> None:
        if self._access_token is None:
            return
        try:
            await self._request("POST", "/auth/v1/logout")
        finally:
            self._access_token = None
            self._listeners.notify(None)

    # Reads

    async def list_calendars(self) -> list[Record]:
        return await self._request(
            "GET",
            "/rest/v1/calendars",
            params=[("select", "*,universities(name)"), ("order", "created_at.desc")],
        ) or []

    async def list_event_types(self) -> list[Record]:
        return await self._request(
            "GET", "/rest/v1/event_types", params=[("select", "*"), ("order", "name")]
        ) or []

    async def list_events(
        self, calendar_id: str, range_start: datetime, range_end: datetime
    ) -> list[Record]:
        params = [("select", "*"), ("calendar_id", f"eq.{calendar_id}")]
        params += self._range_params(range_start, range_end)
        return await self._request("GET", "/rest/v1/events", params=params) or []

    async def list_events_for_university(
        self, university_id: str, range_start: datetime, range_end: datetime
    ) -> list[Record]:
        params = [
            ("select", UNIVERSITY_EVENT_SELECT),
            ("calendars.university_id", f"eq.{university_id}"),
        ]
        params += self._range_params(range_start, range_end)
        return await self._request("GET", "/rest/v1/events", params=params) or []

    # Writes

    async def create_event(self, fields: dict[str, Any]) -> Record:
        rows = await self._request(
            "POST",
            "/rest/v1/events",
            json=event_fields_to_record(fields),
            prefer="return=representation",
        )
        return self._single(rows, "Event insert")

    async def update_event(self, event_id: str, fields: dict[str, Any]) -> Record:
        rows = await self._request(
            "PATCH",
            "/rest/v1/events",
            params=[("id", f"eq.{event_id}")],
            json=event_fields_to_record(fields),
            prefer="return=representation",
        )
        return self._single(rows, f"Event {event_id} update")

    async def delete_event(self, event_id: str) -> None:
        await self._request("DELETE", "/rest/v1/events", params=[("id", f"eq.{event_id}")])

    async def mint_share_token(self, calendar_id: str, ttl_seconds: int) -> str:
        body = await self._request(
            "POST",
            "/rest/v1/rpc/create_share_token",
            json={"calendar_id": calendar_id, "ttl_seconds": ttl_seconds},
        )
        token = body.get("token") if isinstance(body, dict) else body
        if not token:
            raise ProviderError("Share token request returned no token")
        return str(token)
