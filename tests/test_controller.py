"""Dashboard controller flows against the in-memory backend."""

import asyncio
from datetime import date, datetime

import pytest
import pytz

from campus_calendar.auth.session import Session
from campus_calendar.config import AppConfig
from campus_calendar.dashboard.controller import CalendarDashboard
from campus_calendar.dashboard.ranges import ViewMode
from campus_calendar.models.event import EventPatch
from campus_calendar.utils.exceptions import (
    AuthenticationRequired,
    AuthorizationDenied,
    InvalidDraft,
)

pytestmark = pytest.mark.asyncio

ANCHOR = date(2024, 3, 15)


async def _mounted(backend, email: str, **kwargs) -> CalendarDashboard:
    session = Session(backend)
    session.attach()
    await session.login(email)
    dashboard = CalendarDashboard(session, backend, anchor=ANCHOR, **kwargs)
    await dashboard.mount()
    return dashboard


async def test_mount_requires_user(backend):
    dashboard = CalendarDashboard(Session(backend), backend, anchor=ANCHOR)
    with pytest.raises(AuthenticationRequired):
        await dashboard.mount()
    assert backend.calls == []


async def test_teacher_opens_academic_calendar(backend):
    dashboard = await _mounted(backend, "teacher@north.edu")

    assert [c.id for c in dashboard.calendars] == ["c1", "c2", "m1"]
    assert dashboard.active_calendar.id == "c2"
    assert [e.id for e in dashboard.events] == ["e2"]
    assert [et.name for et in dashboard.event_types] == ["Exam", "Holiday"]
    assert dashboard.loading is False
    assert dashboard.can_drag


async def test_student_has_no_default_calendar(backend):
    dashboard = await _mounted(backend, "student@north.edu")

    assert dashboard.active_calendar is None
    assert dashboard.events == []
    assert not dashboard.can_drag
    with pytest.raises(AuthorizationDenied):
        dashboard.select_slot(datetime(2024, 3, 20, 9, 0, tzinfo=pytz.utc))

    await dashboard.select_calendar("c1")
    assert [e.id for e in dashboard.events] == ["e1"]


async def test_select_invisible_calendar_is_denied(backend):
    dashboard = await _mounted(backend, "student@north.edu")
    with pytest.raises(AuthorizationDenied):
        await dashboard.select_calendar("c3")


async def test_aggregate_calendar_shows_university_events(backend):
    dashboard = await _mounted(backend, "ops@north.edu")
    await dashboard.select_calendar("m1")

    assert sorted(e.id for e in dashboard.events) == ["e1", "e2"]
    assert all(e.calendar_name for e in dashboard.events)


async def test_navigation_refetches(backend):
    dashboard = await _mounted(backend, "admin@campus.org")
    await dashboard.select_calendar("c1")
    assert [e.id for e in dashboard.events] == ["e1"]

    await dashboard.navigate("NEXT")
    assert dashboard.anchor == date(2024, 4, 15)
    assert dashboard.events == []

    await dashboard.set_view(ViewMode.YEAR)
    assert [e.id for e in dashboard.events] == ["e1", "e4"]

    await dashboard.open_month(4)
    assert dashboard.view_mode is ViewMode.MONTH
    assert dashboard.anchor == date(2024, 5, 1)
    assert [e.id for e in dashboard.events] == ["e4"]

    await dashboard.navigate("TODAY", today=date(2024, 3, 1))
    assert [e.id for e in dashboard.events] == ["e1"]


async def test_switching_calendar_mid_fetch_shows_latest(gated_backend):
    backend = gated_backend
    # Let the initial load of the default calendar through, then hold c1
    backend.gate("c1").set()
    dashboard = await _mounted(backend, "admin@campus.org")
    assert dashboard.active_calendar.id == "c1"
    backend.gate("c1").clear()

    slow = asyncio.create_task(dashboard.select_calendar("c1"))
    for _ in range(5):
        await asyncio.sleep(0)
    fast = asyncio.create_task(dashboard.select_calendar("c3"))
    for _ in range(5):
        await asyncio.sleep(0)

    backend.gate("c3").set()
    await fast
    backend.gate("c1").set()
    await slow

    assert dashboard.active_calendar.id == "c3"
    assert [e.id for e in dashboard.events] == ["e3"]


async def test_user_change_recomputes_stale_selection(backend):
    dashboard = await _mounted(backend, "teacher@north.edu")
    assert dashboard.active_calendar.id == "c2"

    await dashboard.session.login("teacher@south.edu")
    assert dashboard._pending is not None
    await dashboard._pending

    assert [c.id for c in dashboard.calendars] == ["c3"]
    assert dashboard.active_calendar.id == "c3"
    assert [e.id for e in dashboard.events] == ["e3"]


async def test_sign_out_clears_dashboard(backend):
    dashboard = await _mounted(backend, "teacher@north.edu")
    await dashboard.session.logout()

    assert not dashboard.mounted
    assert dashboard.calendars == []
    assert dashboard.active_calendar is None
    assert dashboard.events == []
    assert await dashboard.refresh_events() is False


async def test_mutation_refetches_event_window(backend):
    dashboard = await _mounted(backend, "teacher@north.edu")
    start = datetime(2024, 3, 21, 10, 0, tzinfo=pytz.utc)

    draft = dashboard.select_slot(start).model_copy(update={"title": "Review session"})
    assert draft.calendar_id == "c2"
    assert draft.event_type_id == "et1"

    created = await dashboard.mutations.create(draft)
    assert created.id in {e.id for e in dashboard.events}

    await dashboard.mutations.update(created.id, EventPatch(title="Exam review"))
    assert "Exam review" in {e.title for e in dashboard.events}

    await dashboard.mutations.delete(created.id)
    assert created.id not in {e.id for e in dashboard.events}


async def test_student_cannot_mutate(backend):
    dashboard = await _mounted(backend, "student@north.edu")
    backend.calls.clear()
    with pytest.raises(AuthorizationDenied):
        await dashboard.mutations.update("e1", EventPatch(title="x"))
    assert backend.calls == []


async def test_sidebar_filters_and_highlight(backend):
    dashboard = await _mounted(backend, "teacher@north.edu")

    dashboard.set_category_filter("academic")
    assert [c.id for c in dashboard.filtered_calendars] == ["c2"]
    assert [et.id for et in dashboard.filtered_event_types] == ["et1"]

    dashboard.toggle_event_type("et2")
    [item] = dashboard.display_events()
    assert item.deemphasized


async def test_context_manager_unmounts(backend):
    session = Session(backend)
    await session.login("admin@campus.org")
    async with CalendarDashboard.from_config(session, backend, AppConfig()) as dashboard:
        assert dashboard.mounted
    assert not dashboard.mounted
    assert dashboard.feed.mounted is False


async def test_catalog_change_during_fetch_settles_on_new_selection(gated_backend):
    backend = gated_backend
    backend.gate("c2").set()
    dashboard = await _mounted(backend, "teacher@north.edu")
    assert dashboard.active_calendar.id == "c2"

    backend.gate("c2").clear()
    in_flight = asyncio.create_task(dashboard.refresh_events())
    for _ in range(5):
        await asyncio.sleep(0)
    assert dashboard.loading is True

    del backend.calendars["c2"]
    backend.gate("c1").set()
    assert await dashboard.refresh_catalog() is True

    backend.gate("c2").set()
    assert await in_flight is False

    assert dashboard.active_calendar.id == "c1"
    assert dashboard.loading is False
    assert [(e.id, e.calendar_id) for e in dashboard.events] == [("e1", "c1")]


async def test_user_change_clears_previous_calendar_events(backend):
    dashboard = await _mounted(backend, "teacher@north.edu")
    assert [e.id for e in dashboard.events] == ["e2"]

    await dashboard.session.login("teacher@south.edu")
    # Nothing from the old selection is shown while the new window loads
    assert dashboard.events == []
    assert dashboard.loading is False

    await dashboard._pending
    assert [e.id for e in dashboard.events] == ["e3"]


async def test_untitled_slot_draft_is_not_stored(backend):
    dashboard = await _mounted(backend, "teacher@north.edu")
    draft = dashboard.select_slot(datetime(2024, 3, 20, 9, 0, tzinfo=pytz.utc))
    before = set(backend.events)

    with pytest.raises(InvalidDraft):
        await dashboard.mutations.create(draft)

    assert set(backend.events) == before
    assert await dashboard.refresh_events() is True
    assert [e.id for e in dashboard.events] == ["e2"]
