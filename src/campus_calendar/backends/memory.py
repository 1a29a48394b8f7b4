"""In-memory backend provider for demos, the CLI and tests."""

import asyncio
import copy
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional

from ..config import SeedData
from ..mapping.records import event_fields_to_record
from ..utils.date_utils import now_utc, parse_timestamp, to_iso
from ..utils.exceptions import AuthenticationRequired, ProviderError
from .base import AuthCallback, AuthListeners, AuthSubscription, BackendProvider, Record

logger = logging.getLogger(__name__)


def _name_from_email(email: str) -> str:
    local = email.split("@")[0]
    return " ".join(part.capitalize() for part in local.split("."))


class InMemoryBackend(BackendProvider):
    """
    Backend keeping rows in dictionaries shaped like the hosted tables.

    Rows use backend column names (``start_time``, ``calendar_id``...), so
    everything read from here goes through the same normalizer as the REST
    backend.
    """

    def __init__(self, seed: Optional[SeedData] = None, latency: float = 0.0):
        """
        Initialize in-memory backend.

        Args:
            seed: Seed rows; empty tables when omitted
            latency: Artificial delay in seconds added to every call
        """
        seed = seed or SeedData()
        self.latency = latency
        self.users: dict[str, Record] = {str(u["id"]): dict(u) for u in seed.users}
        self.universities: dict[str, Record] = {
            str(u["id"]): dict(u) for u in seed.universities
        }
        self.calendars: dict[str, Record] = {str(c["id"]): dict(c) for c in seed.calendars}
        self.event_types: dict[str, Record] = {
            str(et["id"]): dict(et) for et in seed.event_types
        }
        self.events: dict[str, Record] = {str(e["id"]): dict(e) for e in seed.events}
        self.editor_emails = set(seed.editor_emails)
        self.share_tokens: dict[str, Record] = {}
        self.calls: list[str] = []

        self._current_user_id: Optional[str] = None
        self._listeners = AuthListeners()

    async def _delay(self, operation: str) -> None:
        self.calls.append(operation)
        if self.latency:
            await asyncio.sleep(self.latency)

    def _profile(self, user_id: str) -> Record:
        profile = copy.deepcopy(self.users[user_id])
        university = self.universities.get(str(profile.get("university_id")))
        if university:
            profile["universities"] = {"name": university.get("name")}
        return profile

    def _calendar_row(self, calendar_id: str) -> Record:
        row = copy.deepcopy(self.calendars[calendar_id])
        university = self.universities.get(str(row.get("university_id")))
        if university:
            row["universities"] = {"name": university.get("name")}
        return row

    @staticmethod
    def _overlaps(row: Record, range_start: datetime, range_end: datetime) -> bool:
        start = parse_timestamp(row.get("start_time"))
        end = parse_timestamp(row.get("end_time")) or start
        if start is None:
            return False
        return start <= range_end and end >= range_start

    # Authentication

    async def is_authenticated(self) -> bool:
        await self._delay("is_authenticated")
        return self._current_user_id is not None

    async def get_current_user(self) -> Record:
        await self._delay("get_current_user")
        if self._current_user_id is None:
            raise AuthenticationRequired("Not authenticated")
        if self._current_user_id not in self.users:
            raise ProviderError("User not found", status_code=404)
        return self._profile(self._current_user_id)

    def subscribe_auth_changes(self, callback: AuthCallback) -> AuthSubscription:
        return self._listeners.add(callback)

    async def sign_in(self, email: str, password: Optional[str] = None) -> Record:
        await self._delay("sign_in")
        email = email.strip().lower()
        if not email:
            raise AuthenticationRequired("Email is required")

        user = next(
            (u for u in self.users.values() if str(u.get("email", "")).lower() == email),
            None,
        )
        if user is None:
            role = "program_ops" if email in self.editor_emails else "student"
            user = {
                "id": str(uuid.uuid4()),
                "email": email,
                "display_name": _name_from_email(email),
                "role": role,
            }
            self.users[user["id"]] = user
            logger.info(f"Created {role} profile for {email}")

        self._current_user_id = str(user["id"])
        profile = self._profile(self._current_user_id)
        self._listeners.notify(profile)
        return profile

    async def sign_out(self) -> None:
        await self._delay("sign_out")
        self._current_user_id = None
        self._listeners.notify(None)

    # Reads

    async def list_calendars(self) -> list[Record]:
        await self._delay("list_calendars")
        return [self._calendar_row(calendar_id) for calendar_id in self.calendars]

    async def list_event_types(self) -> list[Record]:
        await self._delay("list_event_types")
        return sorted(
            (copy.deepcopy(et) for et in self.event_types.values()),
            key=lambda et: str(et.get("name", "")),
        )

    async def list_events(
        self, calendar_id: str, range_start: datetime, range_end: datetime
    ) -> list[Record]:
        await self._delay("list_events")
        rows = [
            copy.deepcopy(row)
            for row in self.events.values()
            if str(row.get("calendar_id")) == calendar_id
            and self._overlaps(row, range_start, range_end)
        ]
        return sorted(rows, key=lambda row: str(row.get("start_time")))

    async def list_events_for_university(
        self, university_id: str, range_start: datetime, range_end: datetime
    ) -> list[Record]:
        await self._delay("list_events_for_university")
        calendar_ids = {
            calendar_id
            for calendar_id, row in self.calendars.items()
            if str(row.get("university_id")) == university_id
        }
        rows = []
        for row in self.events.values():
            calendar_id = str(row.get("calendar_id"))
            if calendar_id not in calendar_ids:
                continue
            if not self._overlaps(row, range_start, range_end):
                continue
            joined = copy.deepcopy(row)
            calendar = self.calendars[calendar_id]
            joined["calendars"] = {
                "name": calendar.get("name"),
                "category": calendar.get("category"),
                "university_id": calendar.get("university_id"),
            }
            event_type = self.event_types.get(str(row.get("event_type_id")))
            if event_type:
                joined["event_types"] = {
                    "name": event_type.get("name"),
                    "color": event_type.get("color"),
                }
            rows.append(joined)
        return sorted(rows, key=lambda row: str(row.get("start_time")))

    # Writes

    async def create_event(self, fields: dict[str, Any]) -> Record:
        await self._delay("create_event")
        if self._current_user_id is None:
            raise AuthenticationRequired("Not authenticated")
        record = event_fields_to_record(fields)
        if str(record.get("calendar_id")) not in self.calendars:
            raise ProviderError(
                f"Calendar {record.get('calendar_id')} does not exist", status_code=409
            )
        now = to_iso(now_utc())
        record.update(
            id=str(uuid.uuid4()),
            created_by=self._current_user_id,
            created_at=now,
            updated_at=now,
        )
        record.setdefault("all_day", False)
        self.events[record["id"]] = record
        return copy.deepcopy(record)

    async def update_event(self, event_id: str, fields: dict[str, Any]) -> Record:
        await self._delay("update_event")
        if event_id not in self.events:
            raise ProviderError(f"Event {event_id} not found", status_code=404)
        row = self.events[event_id]
        row.update(event_fields_to_record(fields))
        row["updated_at"] = to_iso(now_utc())
        return copy.deepcopy(row)

    async def delete_event(self, event_id: str) -> None:
        await self._delay("delete_event")
        if self.events.pop(event_id, None) is None:
            raise ProviderError(f"Event {event_id} not found", status_code=404)

    async def mint_share_token(self, calendar_id: str, ttl_seconds: int) -> str:
        await self._delay("mint_share_token")
        if calendar_id not in self.calendars:
            raise ProviderError(f"Calendar {calendar_id} does not exist", status_code=404)
        token = uuid.uuid4().hex
        self.share_tokens[token] = {
            "calendar_id": calendar_id,
            "expires_at": to_iso(now_utc() + timedelta(seconds=ttl_seconds)),
        }
        return token
