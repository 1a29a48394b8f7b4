"""Role-scoped calendar visibility and default calendar selection."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Optional, Union

from ..auth.capabilities import EDITOR_ROLES
from ..models.calendar import Calendar, CalendarCategory, EventType
from ..models.user import Role, User

ALL_CATEGORIES = "all"

CategoryFilter = Union[CalendarCategory, str]


@dataclass(frozen=True)
class VisibleCalendars:
    """Calendars a user may see and the one to open by default."""

    visible: list[Calendar] = field(default_factory=list)
    default_active: Optional[Calendar] = None

    def find(self, calendar_id: str) -> Optional[Calendar]:
        return next((c for c in self.visible if c.id == calendar_id), None)


def visible_calendars(user: User, all_calendars: Sequence[Calendar]) -> list[Calendar]:
    """Filter calendars by role and university, preserving order."""
    if user.role == Role.ORG_ADMIN:
        return list(all_calendars)
    if user.university_id:
        return [c for c in all_calendars if c.university_id == user.university_id]
    # Central staff without a university
    return [
        c for c in all_calendars if c.is_public or c.category == CalendarCategory.ADMIN
    ]


def compute_visible(
    user: User,
    all_calendars: Sequence[Calendar],
    current: Optional[Calendar] = None,
) -> VisibleCalendars:
    """
    Compute the calendars visible to a user and the default active calendar.

    A current selection survives only while a calendar with its id is still
    visible; the returned instance is the one from ``all_calendars``.
    Students and guests never get an implicit selection.

    Args:
        user: Signed-in user
        all_calendars: Every calendar returned by the backend
        current: Calendar selected before this recomputation

    Returns:
        VisibleCalendars
    """
    visible = visible_calendars(user, all_calendars)

    if user.role in (Role.STUDENT, Role.GUEST):
        return VisibleCalendars(visible=visible, default_active=None)

    if current is not None:
        kept = next((c for c in visible if c.id == current.id), None)
        if kept is not None:
            return VisibleCalendars(visible=visible, default_active=kept)

    if user.role in EDITOR_ROLES:
        default = next(
            (c for c in visible if c.category == CalendarCategory.ACADEMIC),
            visible[0] if visible else None,
        )
    else:
        default = visible[0] if visible else None
    return VisibleCalendars(visible=visible, default_active=default)


def filter_by_category(
    calendars: Sequence[Calendar], category_filter: CategoryFilter = ALL_CATEGORIES
) -> list[Calendar]:
    """Sidebar calendar filter: ``all``, ``academic`` or ``event``."""
    if category_filter == ALL_CATEGORIES:
        return list(calendars)
    category = CalendarCategory(category_filter)
    return [c for c in calendars if c.category == category]


def filter_event_types(
    event_types: Sequence[EventType], category_filter: CategoryFilter = ALL_CATEGORIES
) -> list[EventType]:
    """Event type toggles for a category; uncategorized types count as events."""
    if category_filter == ALL_CATEGORIES:
        return list(event_types)
    category = CalendarCategory(category_filter)
    return [
        et for et in event_types if (et.category or CalendarCategory.EVENT) == category
    ]
