"""Per-event colors and labels handed to the calendar grid."""

from collections.abc import Collection, Mapping
from dataclasses import dataclass
from typing import Optional

from ..models.calendar import DEFAULT_EVENT_COLOR, EventType
from ..models.event import CalendarEvent
from ..utils.date_utils import format_clock

MUTED_BACKGROUND = "#F3F4F6"
MUTED_TEXT = "#6B7280"
MUTED_BORDER = "#D1D5DB"
TEXT_COLOR = "#111827"
# Appended to a #RRGGBB color, about 12% opacity
BACKGROUND_ALPHA = "20"


@dataclass(frozen=True)
class EventDisplay:
    """An event plus how the grid should paint it."""

    event: CalendarEvent
    color: str
    background_color: str
    text_color: str
    border_color: str
    deemphasized: bool
    time_label: Optional[str] = None


def is_deemphasized(event: CalendarEvent, highlighted_ids: Collection[str]) -> bool:
    """Muted when a highlight filter is active and excludes this event's type."""
    return bool(highlighted_ids) and event.event_type_id not in highlighted_ids


def event_display(
    event: CalendarEvent,
    event_types_by_id: Mapping[str, EventType],
    highlighted_ids: Collection[str] = (),
    tz_name: str = "UTC",
) -> EventDisplay:
    event_type = event_types_by_id.get(event.event_type_id or "")
    color = (event_type.color if event_type else None) or event.event_type_color or DEFAULT_EVENT_COLOR
    muted = is_deemphasized(event, highlighted_ids)

    time_label = None
    if not event.all_day:
        time_label = f"{format_clock(event.start, tz_name)} - {format_clock(event.end, tz_name)}"

    return EventDisplay(
        event=event,
        color=color,
        background_color=MUTED_BACKGROUND if muted else f"{color}{BACKGROUND_ALPHA}",
        text_color=MUTED_TEXT if muted else TEXT_COLOR,
        border_color=MUTED_BORDER if muted else color,
        deemphasized=muted,
        time_label=time_label,
    )


def toggle_highlight(highlighted_ids: list[str], event_type_id: str) -> list[str]:
    """Sidebar toggle; returns a new list."""
    if event_type_id in highlighted_ids:
        return [i for i in highlighted_ids if i != event_type_id]
    return [*highlighted_ids, event_type_id]
