"""Calendar and event type models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

DEFAULT_EVENT_COLOR = "#6B7280"


class CalendarCategory(str, Enum):
    """Calendar category."""

    ACADEMIC = "academic"
    EVENT = "event"
    ADMIN = "admin"


class Calendar(BaseModel):
    """Calendar metadata."""

    id: str
    name: str
    description: Optional[str] = None
    owner_id: Optional[str] = None
    university_id: Optional[str] = None
    university_name: Optional[str] = None
    category: CalendarCategory = CalendarCategory.EVENT
    is_public: bool = False

    model_config = {"frozen": True}


class EventType(BaseModel):
    """Event type used for coloring and filter toggles."""

    id: str
    name: str
    color: str = DEFAULT_EVENT_COLOR
    # Only academic or event; admin is a calendar-only category
    category: Optional[CalendarCategory] = None

    model_config = {"frozen": True}
