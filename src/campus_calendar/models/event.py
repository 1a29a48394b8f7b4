"""Normalized calendar event data models."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator, model_validator

from ..utils.date_utils import ensure_utc
from .calendar import CalendarCategory


class CalendarEvent(BaseModel):
    """Normalized calendar event model."""

    id: str
    title: str
    description: Optional[str] = None

    # Time properties (always timezone-aware)
    start: datetime
    end: datetime
    all_day: bool = False

    calendar_id: str
    event_type_id: Optional[str] = None
    location: Optional[str] = None

    # Display annotations for aggregated views
    calendar_name: Optional[str] = None
    calendar_category: Optional[CalendarCategory] = None
    event_type_name: Optional[str] = None
    event_type_color: Optional[str] = None

    # True when start/end were missing and replaced with the current instant
    time_substituted: bool = False

    model_config = {"frozen": True}


class EventDraft(BaseModel):
    """A new event as entered by the user, before the backend assigns an id."""

    title: str
    start: datetime
    end: datetime
    calendar_id: Optional[str] = None
    event_type_id: Optional[str] = None
    all_day: bool = False
    description: Optional[str] = None
    location: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def check_order(self) -> "EventDraft":
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self

    def to_fields(self) -> dict[str, Any]:
        """Canonical field mapping sent to the backend."""
        return self.model_dump()


class EventPatch(BaseModel):
    """
    Sparse event update.

    Only fields that were explicitly set are sent to the backend, so an
    absent field is never overwritten with None.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    all_day: Optional[bool] = None
    calendar_id: Optional[str] = None
    event_type_id: Optional[str] = None
    location: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @model_validator(mode="after")
    def check_order(self) -> "EventPatch":
        if self.start is not None and self.end is not None and self.end < self.start:
            raise ValueError("end must not be before start")
        return self

    def to_fields(self) -> dict[str, Any]:
        """Canonical fields present in this patch."""
        return self.model_dump(exclude_unset=True)
