"""Visible date windows per view mode, and toolbar navigation."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional, Union

import pytz
from dateutil.relativedelta import relativedelta

AGENDA_LOOKAHEAD_DAYS = 30


class ViewMode(str, Enum):
    """Calendar view mode."""

    MONTH = "month"
    WEEK = "week"
    AGENDA = "agenda"
    YEAR = "year"


class NavigateAction(str, Enum):
    """Toolbar navigation action."""

    PREV = "PREV"
    NEXT = "NEXT"
    TODAY = "TODAY"


@dataclass(frozen=True)
class DateRange:
    """Fetch window; both bounds are inclusive, ``end`` is the last whole second."""

    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start <= self.end and end >= self.start


AnchorDate = Union[date, datetime]

_STEP = {
    ViewMode.MONTH: relativedelta(months=1),
    ViewMode.WEEK: relativedelta(weeks=1),
    ViewMode.AGENDA: relativedelta(months=1),
    ViewMode.YEAR: relativedelta(years=1),
}


def _local_day(anchor: AnchorDate, tz) -> date:
    if isinstance(anchor, datetime):
        if anchor.tzinfo is not None:
            anchor = anchor.astimezone(tz)
        return anchor.date()
    return anchor


def _start_of(day: date, tz) -> datetime:
    return tz.localize(datetime.combine(day, time.min))


def _end_of(day: date, tz) -> datetime:
    return tz.localize(datetime.combine(day, time(23, 59, 59)))


def compute_range(
    anchor: AnchorDate, view_mode: Union[ViewMode, str], tz_name: str = "UTC"
) -> DateRange:
    """
    Compute the window of events to fetch for a view.

    - year: January 1st to December 31st of the anchor's year
    - month: first to last day of the anchor's month
    - week: Sunday to Saturday around the anchor
    - agenda: first day of the anchor's month to the month's last day plus
      30 days

    Args:
        anchor: Date the view is centered on (aware datetimes are converted
            to ``tz_name`` first)
        view_mode: View mode
        tz_name: Timezone the calendar grid is laid out in

    Returns:
        DateRange with timezone-aware bounds
    """
    tz = pytz.timezone(tz_name)
    mode = ViewMode(view_mode)
    day = _local_day(anchor, tz)

    if mode == ViewMode.YEAR:
        first, last = date(day.year, 1, 1), date(day.year, 12, 31)
    elif mode == ViewMode.WEEK:
        first = day - timedelta(days=(day.weekday() + 1) % 7)
        last = first + timedelta(days=6)
    else:
        first = day.replace(day=1)
        last = first + relativedelta(months=1) - timedelta(days=1)
        if mode == ViewMode.AGENDA:
            last += timedelta(days=AGENDA_LOOKAHEAD_DAYS)

    return DateRange(start=_start_of(first, tz), end=_end_of(last, tz))


def navigate(
    anchor: AnchorDate,
    view_mode: Union[ViewMode, str],
    action: Union[NavigateAction, str],
    today: Optional[date] = None,
) -> date:
    """
    Move the anchor date one view step backward or forward, or to today.

    Returns:
        The new anchor date
    """
    action = NavigateAction(action)
    if action == NavigateAction.TODAY:
        return today or date.today()

    day = anchor.date() if isinstance(anchor, datetime) else anchor
    step = _STEP[ViewMode(view_mode)]
    return day - step if action == NavigateAction.PREV else day + step


def month_anchor(year: int, month_index: int) -> date:
    """Anchor for opening a month from the year view (``month_index`` is 0-based)."""
    if not 0 <= month_index <= 11:
        raise ValueError(f"month_index must be 0-11, got {month_index}")
    return date(year, month_index + 1, 1)
