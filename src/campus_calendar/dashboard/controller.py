"""Dashboard state: calendars, the active calendar, the view and its events."""

import asyncio
import contextlib
import logging
from datetime import date, datetime, timedelta
from typing import Optional, Union

from ..auth.capabilities import CapabilitySet
from ..auth.session import Session, Subscription
from ..backends.base import BackendProvider
from ..config import AppConfig
from ..mapping.records import normalize_calendar, normalize_event_types
from ..models.calendar import Calendar, CalendarCategory, EventType
from ..models.event import CalendarEvent, EventDraft
from ..models.user import User
from ..utils.exceptions import AuthorizationDenied, InvalidDraft, ProviderError
from .display import EventDisplay, event_display, toggle_highlight
from .fetcher import DEFAULT_AGGREGATE_MARKER, EventFeed, StaleHook
from .mutations import MutationCoordinator
from .ranges import NavigateAction, ViewMode, month_anchor, navigate
from .sharing import DEFAULT_TTL_DAYS, ShareLinkIssuer
from .visibility import (
    ALL_CATEGORIES,
    CategoryFilter,
    compute_visible,
    filter_by_category,
    filter_event_types,
)

logger = logging.getLogger(__name__)

DEFAULT_EVENT_DURATION = timedelta(hours=1)


class CalendarDashboard:
    """
    State behind the calendar dashboard for one signed-in user.

    Calendars and event types are replaced wholesale on every catalog
    refresh; the event list is owned by ``feed`` and replaced on every
    fetch. Visibility is always recomputed from the latest user and the
    latest calendar set.
    """

    def __init__(
        self,
        session: Session,
        backend: BackendProvider,
        timezone: str = "UTC",
        aggregate_marker: str = DEFAULT_AGGREGATE_MARKER,
        share_base_url: str = "http://localhost:5173",
        share_ttl_days: int = DEFAULT_TTL_DAYS,
        default_view: Union[ViewMode, str] = ViewMode.MONTH,
        anchor: Optional[date] = None,
        on_stale: Optional[StaleHook] = None,
    ):
        self.session = session
        self.backend = backend
        self.timezone = timezone

        self.all_calendars: list[Calendar] = []
        self.calendars: list[Calendar] = []
        self.event_types: list[EventType] = []
        self.active_calendar: Optional[Calendar] = None
        self.view_mode = ViewMode(default_view)
        self.anchor: date = anchor or date.today()
        self.category_filter: CategoryFilter = ALL_CATEGORIES
        self.highlighted_event_type_ids: list[str] = []
        self.catalog_error: Optional[ProviderError] = None
        self.mounted = False

        self.feed = EventFeed(
            backend, tz_name=timezone, aggregate_marker=aggregate_marker, on_stale=on_stale
        )
        self.mutations = MutationCoordinator(
            backend,
            lambda: self.capabilities,
            refetch=self.refresh_events,
            default_calendar_id=lambda: self.active_calendar.id if self.active_calendar else None,
        )
        self.sharing = ShareLinkIssuer(backend, session, share_base_url, share_ttl_days)

        self._catalog_generation = 0
        self._subscription: Optional[Subscription] = None
        self._pending: Optional[asyncio.Task] = None

    @classmethod
    def from_config(
        cls, session: Session, backend: BackendProvider, config: AppConfig
    ) -> "CalendarDashboard":
        return cls(
            session,
            backend,
            timezone=config.timezone,
            aggregate_marker=config.aggregate_marker,
            share_base_url=config.share_base_url,
            share_ttl_days=config.share_ttl_days,
            default_view=config.default_view,
        )

    @property
    def user(self) -> Optional[User]:
        return self.session.user

    @property
    def capabilities(self) -> CapabilitySet:
        return self.session.capabilities

    @property
    def events(self) -> list[CalendarEvent]:
        return self.feed.events

    @property
    def loading(self) -> bool:
        return self.feed.loading

    @property
    def calendars_by_id(self) -> dict[str, Calendar]:
        return {c.id: c for c in self.all_calendars}

    @property
    def event_types_by_id(self) -> dict[str, EventType]:
        return {et.id: et for et in self.event_types}

    # Lifecycle

    async def mount(self) -> None:
        """
        Load calendars, event types and the first event window.

        Raises:
            AuthenticationRequired: If nobody is signed in
        """
        self.session.require_user()
        self.mounted = True
        self.feed.reset()
        if self._subscription is None:
            self._subscription = self.session.subscribe(self._on_user_change)
        await self.refresh()

    def _teardown(self) -> None:
        self.mounted = False
        self.feed.teardown()
        self._catalog_generation += 1
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()

    async def unmount(self) -> None:
        """Tear down; in-flight fetches can no longer touch state."""
        self._teardown()
        if self._pending is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._pending
        self._pending = None

    async def __aenter__(self) -> "CalendarDashboard":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.unmount()

    # Catalog

    def _apply_visibility(self) -> bool:
        """Recompute visible calendars; returns True if the active calendar changed."""
        previous = self.active_calendar
        user = self.session.user
        if user is None:
            self.calendars = []
            self.active_calendar = None
        else:
            result = compute_visible(user, self.all_calendars, current=self.active_calendar)
            self.calendars = result.visible
            self.active_calendar = result.default_active

        previous_id = previous.id if previous else None
        current_id = self.active_calendar.id if self.active_calendar else None
        return previous_id != current_id

    async def refresh_catalog(self) -> bool:
        """
        Reload calendars and event types.

        If the active calendar changes as a result, its events are fetched
        before returning.

        Returns:
            True if the response was applied, False if it failed or was superseded
        """
        changed = await self._load_catalog()
        if changed:
            await self.refresh_events()
        return changed is not None

    async def _load_catalog(self) -> Optional[bool]:
        """Apply a fresh catalog; None if not applied, else whether the selection changed."""
        self._catalog_generation += 1
        generation = self._catalog_generation
        try:
            raw_calendars, raw_event_types = await asyncio.gather(
                self.backend.list_calendars(), self.backend.list_event_types()
            )
        except ProviderError as e:
            if generation == self._catalog_generation and self.mounted:
                logger.error(f"Error fetching calendars: {e}")
                self.catalog_error = e
            return None

        if generation != self._catalog_generation or not self.mounted:
            logger.debug(f"Discarded catalog response {generation}")
            return None

        self.all_calendars = [normalize_calendar(raw) for raw in raw_calendars or []]
        self.event_types = normalize_event_types(raw_event_types or [])
        self.catalog_error = None
        changed = self._apply_visibility()
        if changed:
            self.feed.invalidate(clear=True)
        logger.info(
            f"Loaded {len(self.calendars)}/{len(self.all_calendars)} visible calendars, "
            f"{len(self.event_types)} event types"
        )
        return changed

    async def refresh(self) -> None:
        """Reload the catalog, then the event window for the resulting selection."""
        await self._load_catalog()
        await self.refresh_events()

    def _on_user_change(self, user: Optional[User]) -> None:
        if not self.mounted:
            return
        if user is None:
            logger.info("User signed out, clearing dashboard")
            self._teardown()
            self.all_calendars = []
            self.event_types = []
            self.feed.events = []
            self._apply_visibility()
            return
        if self._apply_visibility():
            self._schedule_refresh()

    def _schedule_refresh(self) -> None:
        self.feed.invalidate(clear=True)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the next explicit refresh_events() picks it up
            return
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = loop.create_task(self.refresh_events())

    # Events

    async def refresh_events(self) -> bool:
        """Refetch the event window for the current calendar and view."""
        if not self.mounted:
            return False
        return await self.feed.refresh(
            self.active_calendar,
            self.anchor,
            self.view_mode,
            calendars_by_id=self.calendars_by_id,
            event_types_by_id=self.event_types_by_id,
        )

    async def select_calendar(self, calendar_id: str) -> Calendar:
        """
        Make a visible calendar active and load its events.

        Raises:
            AuthorizationDenied: If the calendar is not visible to the user
        """
        calendar = next((c for c in self.calendars if c.id == calendar_id), None)
        if calendar is None:
            raise AuthorizationDenied(f"Calendar {calendar_id} is not available")
        self.active_calendar = calendar
        await self.refresh_events()
        return calendar

    async def set_view(self, view_mode: Union[ViewMode, str]) -> None:
        self.view_mode = ViewMode(view_mode)
        await self.refresh_events()

    async def go_to(self, day: Union[date, datetime]) -> None:
        self.anchor = day.date() if isinstance(day, datetime) else day
        await self.refresh_events()

    async def navigate(
        self, action: Union[NavigateAction, str], today: Optional[date] = None
    ) -> None:
        """Toolbar Back / Today / Next."""
        self.anchor = navigate(self.anchor, self.view_mode, action, today=today)
        await self.refresh_events()

    async def open_month(self, month_index: int) -> None:
        """Year view: open a month (0-based) of the displayed year."""
        self.anchor = month_anchor(self.anchor.year, month_index)
        self.view_mode = ViewMode.MONTH
        await self.refresh_events()

    # Sidebar

    def set_category_filter(self, category_filter: CategoryFilter) -> None:
        if category_filter != ALL_CATEGORIES:
            category_filter = CalendarCategory(category_filter)
        self.category_filter = category_filter

    @property
    def filtered_calendars(self) -> list[Calendar]:
        return filter_by_category(self.calendars, self.category_filter)

    @property
    def filtered_event_types(self) -> list[EventType]:
        return filter_event_types(self.event_types, self.category_filter)

    def toggle_event_type(self, event_type_id: str) -> list[str]:
        self.highlighted_event_type_ids = toggle_highlight(
            self.highlighted_event_type_ids, event_type_id
        )
        return self.highlighted_event_type_ids

    # Grid

    @property
    def can_drag(self) -> bool:
        return self.capabilities.can_edit

    def select_slot(self, start: datetime, end: Optional[datetime] = None) -> EventDraft:
        """
        Start a new event from an empty slot.

        Raises:
            AuthorizationDenied: Without can_create
            InvalidDraft: If no calendar is active
        """
        if not self.capabilities.can_create:
            raise AuthorizationDenied("You are not allowed to create events")
        if self.active_calendar is None:
            raise InvalidDraft("Select a calendar before creating an event")
        return EventDraft(
            title="",
            start=start,
            end=end or start + DEFAULT_EVENT_DURATION,
            calendar_id=self.active_calendar.id,
            event_type_id=self.event_types[0].id if self.event_types else None,
        )

    def display_events(self) -> list[EventDisplay]:
        """The normalized event list with per-event colors for the grid."""
        types_by_id = self.event_types_by_id
        return [
            event_display(event, types_by_id, self.highlighted_event_type_ids, self.timezone)
            for event in self.events
        ]
