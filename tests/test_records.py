from datetime import datetime, timedelta

import pytest
import pytz

from campus_calendar.mapping.records import (
    event_fields_to_record,
    normalize_calendar,
    normalize_event,
    normalize_event_type,
    normalize_event_types,
    normalize_user,
)
from campus_calendar.models.calendar import DEFAULT_EVENT_COLOR, CalendarCategory
from campus_calendar.models.user import Role
from campus_calendar.utils.exceptions import MalformedRecord, UnknownRoleError


class TestNormalizeUser:
    def test_nested_university_name(self):
        user = normalize_user(
            {
                "id": 7,
                "email": "t@north.edu",
                "full_name": "Tia",
                "role": "teacher",
                "university_id": "U1",
                "universities": {"name": "North University"},
            }
        )
        assert user.id == "7"
        assert user.display_name == "Tia"
        assert user.role is Role.TEACHER
        assert user.university_name == "North University"

    def test_camel_case_fields(self):
        user = normalize_user(
            {"id": "u", "email": "x@y.z", "displayName": "X", "role": "PM", "universityId": "U2"}
        )
        assert user.display_name == "X"
        assert user.university_id == "U2"

    def test_display_name_falls_back_to_email(self):
        user = normalize_user({"id": "u", "email": "x@y.z", "role": "guest"})
        assert user.display_name == "x@y.z"

    def test_missing_role(self):
        with pytest.raises(MalformedRecord):
            normalize_user({"id": "u", "email": "x@y.z"})

    def test_unknown_role(self):
        with pytest.raises(UnknownRoleError):
            normalize_user({"id": "u", "email": "x@y.z", "role": "dean"})


class TestNormalizeCalendar:
    def test_defaults(self):
        cal = normalize_calendar({"id": "c", "name": "Cal"})
        assert cal.category is CalendarCategory.EVENT
        assert cal.is_public is False
        assert cal.university_id is None

    def test_embedded_university(self):
        cal = normalize_calendar(
            {
                "id": "c",
                "name": "Cal",
                "category": "academic",
                "isPublic": True,
                "universities": [{"id": "U1", "name": "North University"}],
            }
        )
        assert cal.category is CalendarCategory.ACADEMIC
        assert cal.is_public is True
        assert cal.university_id == "U1"
        assert cal.university_name == "North University"

    def test_unknown_category(self):
        with pytest.raises(MalformedRecord):
            normalize_calendar({"id": "c", "name": "Cal", "category": "sports"})

    @pytest.mark.parametrize(
        "value, expected",
        [("false", False), ("FALSE", False), ("0", False), ("true", True), ("t", True), ("1", True)],
    )
    def test_text_public_flag(self, value, expected):
        cal = normalize_calendar({"id": "c", "name": "Cal", "is_public": value})
        assert cal.is_public is expected

    def test_unreadable_public_flag(self):
        with pytest.raises(MalformedRecord):
            normalize_calendar({"id": "c", "name": "Cal", "is_public": "maybe"})


class TestEventTypes:
    def test_default_color(self):
        assert normalize_event_type({"id": "x", "name": "Talk"}).color == DEFAULT_EVENT_COLOR

    def test_dedupe_keeps_first_occurrence(self):
        types = normalize_event_types(
            [
                {"id": "1", "name": "Exam", "color": "#EF4444"},
                {"id": "2", "name": "exam", "color": "#000000"},
                {"id": "3", "name": "Holiday"},
            ]
        )
        assert [et.name for et in types] == ["Exam", "Holiday"]
        assert types[0].id == "1"
        assert types[0].color == "#EF4444"

    def test_dedupe_ignores_surrounding_whitespace(self):
        types = normalize_event_types([{"id": "1", "name": "Exam"}, {"id": "2", "name": " EXAM "}])
        assert len(types) == 1


class TestNormalizeEvent:
    def test_backend_columns(self):
        event = normalize_event(
            {
                "id": "e1",
                "title": "Orientation",
                "calendar_id": "c1",
                "start_time": "2024-03-05 09:00:00+00",
                "end_time": "2024-03-05T10:30:00Z",
                "all_day": False,
            }
        )
        assert event.start == datetime(2024, 3, 5, 9, 0, tzinfo=pytz.utc)
        assert event.end == datetime(2024, 3, 5, 10, 30, tzinfo=pytz.utc)
        assert event.time_substituted is False

    def test_camel_case_and_offsets(self):
        event = normalize_event(
            {
                "id": "e1",
                "subject": "Lecture",
                "calendarId": "c1",
                "startTime": "2024-03-05T09:00:00+01:00",
                "endTime": "2024-03-05T10:00:00+01:00",
                "allDay": True,
            }
        )
        assert event.title == "Lecture"
        assert event.start == datetime(2024, 3, 5, 8, 0, tzinfo=pytz.utc)
        assert event.all_day is True

    def test_missing_times_are_substituted(self):
        before = datetime.now(pytz.utc) - timedelta(seconds=1)
        event = normalize_event({"id": "e", "title": "T", "calendar_id": "c"})
        assert event.time_substituted is True
        assert event.start >= before
        assert event.end == event.start

    def test_end_before_start_is_clamped(self):
        event = normalize_event(
            {
                "id": "e",
                "title": "T",
                "calendar_id": "c",
                "start": "2024-03-05T10:00:00Z",
                "end": "2024-03-05T09:00:00Z",
            }
        )
        assert event.end == event.start

    def test_nested_relations_become_annotations(self):
        event = normalize_event(
            {
                "id": "e",
                "title": "T",
                "calendar_id": "c1",
                "event_type_id": "et1",
                "start_time": "2024-03-05T10:00:00Z",
                "end_time": "2024-03-05T11:00:00Z",
                "calendars": {"name": "North Events", "category": "event"},
                "event_types": {"name": "Exam", "color": "#EF4444"},
            }
        )
        assert event.calendar_name == "North Events"
        assert event.calendar_category is CalendarCategory.EVENT
        assert event.event_type_name == "Exam"
        assert event.event_type_color == "#EF4444"

    @pytest.mark.parametrize("missing", ["id", "title", "calendar_id"])
    def test_required_fields(self, missing):
        raw = {"id": "e", "title": "T", "calendar_id": "c", "start": "2024-01-01T00:00:00Z"}
        del raw[missing]
        with pytest.raises(MalformedRecord):
            normalize_event(raw)

    def test_unparseable_timestamp(self):
        with pytest.raises(MalformedRecord):
            normalize_event({"id": "e", "title": "T", "calendar_id": "c", "start": "soon"})

    def test_text_all_day_flag(self):
        raw = {"id": "e", "title": "T", "calendar_id": "c", "start": "2024-01-01T00:00:00Z"}
        assert normalize_event({**raw, "all_day": "false"}).all_day is False
        assert normalize_event({**raw, "all_day": "0"}).all_day is False
        assert normalize_event({**raw, "allDay": "true"}).all_day is True


class TestIdempotence:
    def test_user(self):
        user = normalize_user({"id": "u", "email": "x@y.z", "role": "COS", "university_id": "U1"})
        assert normalize_user(user.model_dump()) == user

    def test_calendar(self):
        cal = normalize_calendar({"id": "c", "name": "Cal", "category": "admin", "university_id": "U1"})
        assert normalize_calendar(cal.model_dump()) == cal

    def test_event_type(self):
        et = normalize_event_type({"id": "x", "name": "Exam", "category": "academic"})
        assert normalize_event_type(et.model_dump()) == et

    def test_event(self):
        event = normalize_event(
            {
                "id": "e",
                "title": "T",
                "calendar_id": "c1",
                "start_time": "2024-03-05T10:00:00Z",
                "end_time": "2024-03-05T11:00:00Z",
                "calendars": {"name": "North Events", "category": "event"},
            }
        )
        assert normalize_event(event.model_dump()) == event

    def test_substituted_event_keeps_flag(self):
        event = normalize_event({"id": "e", "title": "T", "calendar_id": "c"})
        again = normalize_event(event.model_dump())
        assert again == event
        assert again.time_substituted is True


def test_event_fields_to_record_emits_only_present_fields():
    start = datetime(2024, 3, 5, 9, 0, tzinfo=pytz.utc)
    record = event_fields_to_record({"title": "New", "start": start})
    assert record == {"title": "New", "start_time": "2024-03-05T09:00:00+00:00"}
