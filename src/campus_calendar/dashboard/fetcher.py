"""Event range fetching and the dashboard's event list."""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Optional, Union

from ..backends.base import BackendProvider
from ..mapping.records import normalize_event
from ..models.calendar import Calendar, CalendarCategory, EventType
from ..models.event import CalendarEvent
from ..utils.exceptions import ProviderError, StaleResponse
from .ranges import AnchorDate, DateRange, ViewMode, compute_range

logger = logging.getLogger(__name__)

DEFAULT_AGGREGATE_MARKER = "main"


@dataclass
class FetchResult:
    """Events for one (calendar, window) pair."""

    events: list[CalendarEvent] = field(default_factory=list)
    range: Optional[DateRange] = None
    aggregate: bool = False
    # Aggregate view without a university, fetched as a single calendar
    degraded: bool = False


def is_aggregate_view(calendar: Calendar, marker: str = DEFAULT_AGGREGATE_MARKER) -> bool:
    """Whether a calendar stands for the union of its university's calendars."""
    if calendar.category == CalendarCategory.ADMIN:
        return True
    return bool(marker) and marker.lower() in calendar.name.lower()


def annotate_events(
    events: list[CalendarEvent],
    calendars_by_id: Mapping[str, Calendar],
    event_types_by_id: Mapping[str, EventType],
) -> list[CalendarEvent]:
    """Fill display annotations the backend did not embed."""
    result = []
    for event in events:
        update = {}
        calendar = calendars_by_id.get(event.calendar_id)
        if calendar is not None:
            if event.calendar_name is None:
                update["calendar_name"] = calendar.name
            if event.calendar_category is None:
                update["calendar_category"] = calendar.category
        event_type = event_types_by_id.get(event.event_type_id or "")
        if event_type is not None:
            if event.event_type_name is None:
                update["event_type_name"] = event_type.name
            if event.event_type_color is None:
                update["event_type_color"] = event_type.color
        result.append(event.model_copy(update=update) if update else event)
    return result


async def fetch_events(
    backend: BackendProvider,
    active_calendar: Optional[Calendar],
    anchor: AnchorDate,
    view_mode: Union[ViewMode, str],
    tz_name: str = "UTC",
    aggregate_marker: str = DEFAULT_AGGREGATE_MARKER,
    calendars_by_id: Optional[Mapping[str, Calendar]] = None,
    event_types_by_id: Optional[Mapping[str, EventType]] = None,
) -> FetchResult:
    """
    Fetch the normalized events of the active calendar for a view.

    Args:
        backend: Backend provider
        active_calendar: Selected calendar; None fetches nothing
        anchor: Date the view is centered on
        view_mode: View mode deciding the window
        tz_name: Timezone of the calendar grid
        aggregate_marker: Name fragment marking an aggregate ("main") calendar
        calendars_by_id: Known calendars, used to annotate aggregate results
        event_types_by_id: Known event types, used to annotate aggregate results

    Returns:
        FetchResult

    Raises:
        ProviderError: If the backend fails
        MalformedRecord: If the backend returns an event without id, title
            or calendar
    """
    if active_calendar is None:
        logger.debug("No active calendar, skipping event fetch")
        return FetchResult()

    window = compute_range(anchor, view_mode, tz_name)
    aggregate = is_aggregate_view(active_calendar, aggregate_marker)
    degraded = False

    if aggregate and active_calendar.university_id:
        logger.info(
            f"Fetching university {active_calendar.university_id} events "
            f"for aggregate calendar '{active_calendar.name}'"
        )
        raws = await backend.list_events_for_university(
            active_calendar.university_id, window.start, window.end
        )
    else:
        if aggregate:
            degraded = True
            logger.warning(
                f"Aggregate calendar '{active_calendar.name}' ({active_calendar.id}) "
                "has no university, showing only its own events"
            )
        raws = await backend.list_events(active_calendar.id, window.start, window.end)

    events = [normalize_event(raw) for raw in raws or []]
    if aggregate and not degraded:
        events = annotate_events(events, calendars_by_id or {}, event_types_by_id or {})

    logger.info(
        f"Fetched {len(events)} events for {window.start.date()} - {window.end.date()}"
    )
    return FetchResult(events=events, range=window, aggregate=aggregate, degraded=degraded)


StaleHook = Callable[[StaleResponse], None]


class EventFeed:
    """
    Owns the event list shown on the grid.

    Every ``refresh`` takes a new generation; a response is applied only if
    its generation is still the latest and the feed is still mounted.
    Superseded responses are dropped and reported to ``on_stale``.
    """

    def __init__(
        self,
        backend: BackendProvider,
        tz_name: str = "UTC",
        aggregate_marker: str = DEFAULT_AGGREGATE_MARKER,
        on_stale: Optional[StaleHook] = None,
    ):
        self.backend = backend
        self.tz_name = tz_name
        self.aggregate_marker = aggregate_marker
        self.on_stale = on_stale

        self.events: list[CalendarEvent] = []
        self.loading = False
        self.last_error: Optional[ProviderError] = None
        self.last_result: Optional[FetchResult] = None
        self.mounted = True
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def invalidate(self, clear: bool = False) -> int:
        """
        Supersede any outstanding fetch.

        A superseded fetch never touches state again, so ``loading`` is
        released here. With ``clear`` the current list is dropped as well,
        for when it belongs to a calendar that is no longer selected.
        """
        self._generation += 1
        self.loading = False
        if clear:
            self.events = []
            self.last_result = None
            self.last_error = None
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return self.mounted and generation == self._generation

    def _discard(self, generation: int) -> None:
        stale = StaleResponse(
            f"Discarded event fetch {generation} (current {self._generation}, "
            f"mounted={self.mounted})",
            generation=generation,
            current_generation=self._generation,
        )
        logger.debug(str(stale))
        if self.on_stale is not None:
            self.on_stale(stale)

    async def refresh(
        self,
        active_calendar: Optional[Calendar],
        anchor: AnchorDate,
        view_mode: Union[ViewMode, str],
        calendars_by_id: Optional[Mapping[str, Calendar]] = None,
        event_types_by_id: Optional[Mapping[str, EventType]] = None,
    ) -> bool:
        """
        Replace the event list with a fresh fetch.

        On ``ProviderError`` the previous list is kept and the error is
        stored in ``last_error``.

        Returns:
            True if this call's result (or error) was applied
        """
        if not self.mounted:
            return False

        generation = self.invalidate()
        if active_calendar is None:
            self.events = []
            self.last_result = FetchResult()
            self.last_error = None
            self.loading = False
            return True

        self.loading = True
        try:
            result = await fetch_events(
                self.backend,
                active_calendar,
                anchor,
                view_mode,
                tz_name=self.tz_name,
                aggregate_marker=self.aggregate_marker,
                calendars_by_id=calendars_by_id,
                event_types_by_id=event_types_by_id,
            )
        except ProviderError as e:
            if not self._is_current(generation):
                self._discard(generation)
                return False
            logger.error(f"Error fetching events: {e}")
            self.last_error = e
            return True
        finally:
            if self._is_current(generation):
                self.loading = False

        if not self._is_current(generation):
            self._discard(generation)
            return False

        self.events = result.events
        self.last_result = result
        self.last_error = None
        return True

    def teardown(self) -> None:
        """Stop applying results; any in-flight fetch is discarded."""
        self.mounted = False
        self.loading = False
        self.invalidate()

    def reset(self) -> None:
        """Mount again with an empty list."""
        self.mounted = True
        self.events = []
        self.last_error = None
        self.last_result = None
        self.invalidate()
