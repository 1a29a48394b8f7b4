"""Capability-checked event mutations with refetch on success."""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Optional, Union

from ..auth.capabilities import CapabilitySet
from ..backends.base import BackendProvider
from ..mapping.records import normalize_event
from ..models.event import CalendarEvent, EventDraft, EventPatch
from ..utils.exceptions import AuthorizationDenied, InvalidDraft, ProviderError

logger = logging.getLogger(__name__)

Refetch = Callable[[], Awaitable[object]]
CapabilitySource = Union[CapabilitySet, Callable[[], CapabilitySet]]


class MutationCoordinator:
    """
    Apply create/update/delete against the backend.

    Capabilities are checked before anything is sent. After a successful
    mutation the full event range is refetched instead of patching the
    local list, so backend-computed fields are always current.
    """

    def __init__(
        self,
        backend: BackendProvider,
        capabilities: CapabilitySource,
        refetch: Optional[Refetch] = None,
        default_calendar_id: Optional[Callable[[], Optional[str]]] = None,
    ):
        """
        Initialize mutation coordinator.

        Args:
            backend: Backend provider
            capabilities: Capability set, or a callable returning the current one
            refetch: Coroutine function reloading the event range
            default_calendar_id: Callable giving the calendar for drafts without one
        """
        self.backend = backend
        self._capabilities = capabilities
        self._refetch = refetch
        self._default_calendar_id = default_calendar_id
        self.saving = False

    @property
    def capabilities(self) -> CapabilitySet:
        if callable(self._capabilities):
            return self._capabilities()
        return self._capabilities

    def _require(self, capability: str, action: str) -> None:
        if not getattr(self.capabilities, capability):
            logger.warning(f"Refused to {action}: missing {capability}")
            raise AuthorizationDenied(f"You are not allowed to {action}")

    @staticmethod
    def _title(value: Optional[str]) -> str:
        title = (value or "").strip()
        if not title:
            raise InvalidDraft("Event title is required")
        return title

    async def _after_success(self) -> None:
        if self._refetch is not None:
            await self._refetch()

    async def create(self, draft: EventDraft) -> CalendarEvent:
        """
        Create an event.

        Returns:
            The event as stored by the backend

        Raises:
            AuthorizationDenied: Without can_create
            InvalidDraft: If the title is blank or no calendar can be resolved
                for the draft
            ProviderError: If the backend fails
        """
        self._require("can_create", "create events")
        title = self._title(draft.title)

        calendar_id = draft.calendar_id
        if not calendar_id and self._default_calendar_id is not None:
            calendar_id = self._default_calendar_id()
        if not calendar_id:
            raise InvalidDraft("Select a calendar before creating an event")

        fields = draft.to_fields()
        fields["title"] = title
        fields["calendar_id"] = calendar_id

        self.saving = True
        try:
            raw = await self.backend.create_event(fields)
            event = normalize_event(raw)
            logger.info(f"Created event '{event.title}' ({event.id})")
        except ProviderError as e:
            logger.error(f"Failed to create event '{draft.title}': {e}")
            raise
        finally:
            self.saving = False

        await self._after_success()
        return event

    async def update(self, event_id: str, patch: EventPatch) -> CalendarEvent:
        """
        Update only the fields set on ``patch``.

        Raises:
            AuthorizationDenied: Without can_edit
            InvalidDraft: If the patch sets a blank title
            ProviderError: If the backend fails
        """
        self._require("can_edit", "edit events")

        fields = patch.to_fields()
        if "title" in fields:
            fields["title"] = self._title(fields["title"])
        self.saving = True
        try:
            raw = await self.backend.update_event(event_id, fields)
            event = normalize_event(raw)
            logger.info(f"Updated event {event_id}: {', '.join(sorted(fields)) or 'no fields'}")
        except ProviderError as e:
            logger.error(f"Failed to update event {event_id}: {e}")
            raise
        finally:
            self.saving = False

        await self._after_success()
        return event

    async def move(self, event_id: str, start: datetime, end: datetime) -> CalendarEvent:
        """Drag-and-drop result from the grid."""
        return await self.update(event_id, EventPatch(start=start, end=end))

    async def resize(self, event_id: str, start: datetime, end: datetime) -> CalendarEvent:
        """Resize result from the grid."""
        return await self.update(event_id, EventPatch(start=start, end=end))

    async def delete(self, event_id: str) -> None:
        """
        Delete an event. Confirmation is the caller's job.

        Raises:
            AuthorizationDenied: Without can_delete
            ProviderError: If the backend fails
        """
        self._require("can_delete", "delete events")

        self.saving = True
        try:
            await self.backend.delete_event(event_id)
            logger.info(f"Deleted event {event_id}")
        except ProviderError as e:
            logger.error(f"Failed to delete event {event_id}: {e}")
            raise
        finally:
            self.saving = False

        await self._after_success()
