"""Translation between raw backend records and canonical entities.

Backend rows drift in naming (snake_case columns, camelCase payloads from
older clients, canonical names from already normalized data) and may embed
related rows as nested objects. Each field has an explicit fallback chain.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from ..auth.capabilities import parse_role
from ..models.calendar import DEFAULT_EVENT_COLOR, Calendar, CalendarCategory, EventType
from ..models.event import CalendarEvent
from ..models.user import User
from ..utils.date_utils import now_utc, parse_timestamp, to_iso
from ..utils.exceptions import MalformedRecord

logger = logging.getLogger(__name__)

ID_KEYS = ("id",)
UNIVERSITY_ID_KEYS = ("university_id", "universityId")
UNIVERSITY_NAME_KEYS = ("university_name", "universityName")
UNIVERSITY_RELATION_KEYS = ("universities", "university")

START_KEYS = ("start", "start_time", "startTime", "starts_at", "start_date")
END_KEYS = ("end", "end_time", "endTime", "ends_at", "end_date")

# Canonical event field -> backend column
EVENT_COLUMNS = {
    "title": "title",
    "description": "description",
    "start": "start_time",
    "end": "end_time",
    "all_day": "all_day",
    "calendar_id": "calendar_id",
    "event_type_id": "event_type_id",
    "location": "location",
}


def _pick(raw: Mapping[str, Any], keys: Iterable[str], default: Any = None) -> Any:
    """Return the first present, non-None value among keys."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return default


def _require(raw: Mapping[str, Any], keys: tuple[str, ...], kind: str) -> Any:
    value = _pick(raw, keys)
    if value is None or value == "":
        raise MalformedRecord(f"{kind} record is missing required field '{keys[0]}': {dict(raw)!r}")
    return value


def _relation(raw: Mapping[str, Any], keys: Iterable[str]) -> Mapping[str, Any]:
    """Return an embedded related row, unwrapping single-element lists."""
    value = _pick(raw, keys)
    if isinstance(value, list):
        value = value[0] if value else None
    return value if isinstance(value, Mapping) else {}


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


TRUE_STRINGS = frozenset({"true", "t", "1", "yes", "y", "on"})
FALSE_STRINGS = frozenset({"false", "f", "0", "no", "n", "off", ""})


def _flag(value: Any, field: str) -> bool:
    """Read a boolean column that may arrive as text ('false', 't', '1')."""
    if value is None:
        return False
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
        raise MalformedRecord(f"Field '{field}' is not a boolean: {value!r}")
    return bool(value)


def _category(value: Any, kind: str) -> Optional[CalendarCategory]:
    if value is None or value == "":
        return None
    try:
        return CalendarCategory(value)
    except ValueError as e:
        raise MalformedRecord(f"{kind} record has unknown category {value!r}") from e


def normalize_user(raw: Mapping[str, Any]) -> User:
    """Map a raw profile row to a User."""
    user_id = _text(_require(raw, ID_KEYS, "User"))
    role = parse_role(_require(raw, ("role",), "User"))
    email = _text(_pick(raw, ("email",), "")) or ""
    university = _relation(raw, UNIVERSITY_RELATION_KEYS)

    return User(
        id=user_id,
        email=email,
        display_name=_text(
            _pick(raw, ("display_name", "displayName", "name", "full_name"))
        ) or email,
        role=role,
        university_id=_text(_pick(raw, UNIVERSITY_ID_KEYS)),
        university_name=_text(_pick(raw, UNIVERSITY_NAME_KEYS) or university.get("name")),
    )


def normalize_calendar(raw: Mapping[str, Any]) -> Calendar:
    """Map a raw calendar row to a Calendar."""
    university = _relation(raw, UNIVERSITY_RELATION_KEYS)

    return Calendar(
        id=_text(_require(raw, ID_KEYS, "Calendar")),
        name=_text(_require(raw, ("name",), "Calendar")),
        description=_text(raw.get("description")),
        owner_id=_text(_pick(raw, ("owner_id", "ownerId"))),
        university_id=_text(_pick(raw, UNIVERSITY_ID_KEYS) or university.get("id")),
        university_name=_text(_pick(raw, UNIVERSITY_NAME_KEYS) or university.get("name")),
        category=_category(raw.get("category"), "Calendar") or CalendarCategory.EVENT,
        is_public=_flag(_pick(raw, ("is_public", "isPublic")), "is_public"),
    )


def normalize_event_type(raw: Mapping[str, Any]) -> EventType:
    """Map a raw event type row to an EventType."""
    return EventType(
        id=_text(_require(raw, ID_KEYS, "EventType")),
        name=_text(_require(raw, ("name",), "EventType")),
        color=_text(raw.get("color")) or DEFAULT_EVENT_COLOR,
        category=_category(raw.get("category"), "EventType"),
    )


def dedupe_event_types(event_types: Iterable[EventType]) -> list[EventType]:
    """Drop event types whose name repeats case-insensitively; first one wins."""
    seen: set[str] = set()
    result = []
    for event_type in event_types:
        key = event_type.name.strip().casefold()
        if key in seen:
            logger.debug(f"Dropping duplicate event type '{event_type.name}' ({event_type.id})")
            continue
        seen.add(key)
        result.append(event_type)
    return result


def normalize_event_types(raws: Iterable[Mapping[str, Any]]) -> list[EventType]:
    """Normalize and deduplicate a list of raw event type rows."""
    return dedupe_event_types(normalize_event_type(raw) for raw in raws)


def normalize_event(raw: Mapping[str, Any]) -> CalendarEvent:
    """
    Map a raw event row to a CalendarEvent.

    A missing start or end is replaced with the current instant so the event
    can still be rendered; such events carry ``time_substituted=True``.

    Raises:
        MalformedRecord: If id, title or calendar id is missing, or a
            timestamp cannot be parsed
    """
    event_id = _text(_require(raw, ID_KEYS, "Event"))
    title = _text(_require(raw, ("title", "subject"), "Event"))

    calendar = _relation(raw, ("calendars", "calendar"))
    event_type = _relation(raw, ("event_types", "event_type"))
    calendar_id = _text(_pick(raw, ("calendar_id", "calendarId")) or calendar.get("id"))
    if not calendar_id:
        raise MalformedRecord(f"Event record is missing required field 'calendar_id': {dict(raw)!r}")

    try:
        start = parse_timestamp(_pick(raw, START_KEYS))
        end = parse_timestamp(_pick(raw, END_KEYS))
    except ValueError as e:
        raise MalformedRecord(f"Event {event_id} has an unparseable timestamp: {e}") from e

    substituted = _flag(raw.get("time_substituted"), "time_substituted")
    if start is None or end is None:
        now = now_utc()
        logger.warning(f"Event {event_id} is missing start/end, substituting current time")
        start = start or now
        end = end or now
        substituted = True
    if end < start:
        logger.warning(f"Event {event_id} ends before it starts, clamping end to start")
        end = start

    return CalendarEvent(
        id=event_id,
        title=title,
        description=_text(raw.get("description")),
        start=start,
        end=end,
        all_day=_flag(_pick(raw, ("all_day", "allDay", "is_all_day")), "all_day"),
        calendar_id=calendar_id,
        event_type_id=_text(_pick(raw, ("event_type_id", "eventTypeId")) or event_type.get("id")),
        location=_text(raw.get("location")),
        calendar_name=_text(_pick(raw, ("calendar_name", "calendarName")) or calendar.get("name")),
        calendar_category=_category(
            _pick(raw, ("calendar_category", "calendarCategory")) or calendar.get("category"),
            "Event",
        ),
        event_type_name=_text(
            _pick(raw, ("event_type_name", "eventTypeName")) or event_type.get("name")
        ),
        event_type_color=_text(
            _pick(raw, ("event_type_color", "eventTypeColor")) or event_type.get("color")
        ),
        time_substituted=substituted,
    )


def event_fields_to_record(fields: Mapping[str, Any]) -> dict[str, Any]:
    """
    Translate canonical event fields into backend columns.

    Only fields present in ``fields`` are emitted; datetimes become ISO strings.
    """
    record: dict[str, Any] = {}
    for field, column in EVENT_COLUMNS.items():
        if field not in fields:
            continue
        value = fields[field]
        if field in ("start", "end") and value is not None:
            value = to_iso(value)
        record[column] = value
    return record
