"""Shared fixtures: a small two-university campus."""

import asyncio
import copy
import logging

import pytest

from campus_calendar.backends.memory import InMemoryBackend
from campus_calendar.config import SeedData

CAMPUS = {
    "universities": [
        {"id": "U1", "name": "North University"},
        {"id": "U2", "name": "South University"},
    ],
    "users": [
        {"id": "s1", "email": "student@north.edu", "display_name": "Sam Student", "role": "student", "university_id": "U1"},
        {"id": "t1", "email": "teacher@north.edu", "display_name": "Tia Teacher", "role": "teacher", "university_id": "U1"},
        {"id": "t2", "email": "teacher@south.edu", "display_name": "Theo Teacher", "role": "teacher", "university_id": "U2"},
        {"id": "p1", "email": "ops@north.edu", "display_name": "Pat Ops", "role": "program_ops", "university_id": "U1"},
        {"id": "a1", "email": "admin@campus.org", "display_name": "Ada Admin", "role": "org_admin"},
    ],
    "calendars": [
        {"id": "c1", "name": "North Events", "university_id": "U1", "category": "event"},
        {"id": "c2", "name": "North Academic", "university_id": "U1", "category": "academic"},
        {"id": "m1", "name": "North Main", "university_id": "U1", "category": "admin"},
        {"id": "c3", "name": "South Events", "university_id": "U2", "category": "event"},
        {"id": "pub", "name": "Campus Holidays", "category": "event", "is_public": True},
    ],
    "event_types": [
        {"id": "et1", "name": "Exam", "color": "#EF4444", "category": "academic"},
        {"id": "et2", "name": "Holiday", "color": "#10B981"},
        {"id": "et3", "name": "exam", "color": "#000000"},
    ],
    "events": [
        {
            "id": "e1",
            "title": "Orientation",
            "calendar_id": "c1",
            "event_type_id": "et2",
            "start_time": "2024-03-05T09:00:00Z",
            "end_time": "2024-03-05T10:30:00Z",
        },
        {
            "id": "e2",
            "title": "Midterm",
            "calendar_id": "c2",
            "event_type_id": "et1",
            "start_time": "2024-03-10T13:00:00Z",
            "end_time": "2024-03-10T15:00:00Z",
        },
        {
            "id": "e3",
            "title": "South Fair",
            "calendar_id": "c3",
            "start_time": "2024-03-12T10:00:00Z",
            "end_time": "2024-03-12T12:00:00Z",
        },
        {
            "id": "e4",
            "title": "Graduation",
            "calendar_id": "c1",
            "start_time": "2024-05-01T15:00:00Z",
            "end_time": "2024-05-01T17:00:00Z",
        },
    ],
    "editor_emails": ["New.Ops@North.edu"],
}


class GatedBackend(InMemoryBackend):
    """list_events blocks until the test opens the calendar's gate."""

    def __init__(self, seed):
        super().__init__(seed)
        self.gates: dict[str, asyncio.Event] = {}

    def gate(self, calendar_id: str) -> asyncio.Event:
        return self.gates.setdefault(calendar_id, asyncio.Event())

    async def list_events(self, calendar_id, range_start, range_end):
        await self.gate(calendar_id).wait()
        return await super().list_events(calendar_id, range_start, range_end)


@pytest.fixture
def campus() -> dict:
    return copy.deepcopy(CAMPUS)


@pytest.fixture
def seed(campus) -> SeedData:
    return SeedData(campus)


@pytest.fixture
def backend(seed) -> InMemoryBackend:
    return InMemoryBackend(seed)


@pytest.fixture
def gated_backend(seed) -> GatedBackend:
    return GatedBackend(seed)


@pytest.fixture
def restore_logger():
    """Undo handlers installed by setup_logging."""
    logger = logging.getLogger("campus_calendar")
    handlers, level = list(logger.handlers), logger.level
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
