"""
EventStore: the authoritative collection of events.

Ownership is checked here, and registration runs its capacity check,
duplicate check, append and persist under the store lock so two callers
racing for the last spot cannot both get it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from eventhub.core.exceptions import (
    CapacityConflictError,
    EventNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from eventhub.core.timeutil import parse_dt
from eventhub.database.record_store import RecordStore
from eventhub.database.snapshot import SnapshotStore
from eventhub.events_service.models import Event, clean_event_fields

logger = logging.getLogger(__name__)


@dataclass
class EventFilters:
    """Conjunctive event filters. None means the filter is not applied."""

    category: Optional[str] = None
    status: Optional[str] = None
    is_public: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EventFilters":
        data = data or {}
        start = data.get("start_date")
        end = data.get("end_date")
        start_dt = parse_dt(start)
        end_dt = parse_dt(end)
        if start and start_dt is None:
            raise ValidationError("Invalid start_date format. Use ISO-8601.")
        if end and end_dt is None:
            raise ValidationError("Invalid end_date format. Use ISO-8601.")
        return cls(
            category=data.get("category") or None,
            status=data.get("status") or None,
            is_public=data.get("is_public"),
            start_date=start_dt,
            end_date=end_dt,
        )

    def matches(self, event: Event) -> bool:
        if self.is_public is not None and event.is_public != self.is_public:
            return False
        if self.status and event.status != self.status:
            return False
        if self.category and event.category != self.category:
            return False
        if self.start_date and event.date < self.start_date:
            return False
        if self.end_date and event.date > self.end_date:
            return False
        return True


class EventStore(RecordStore[Event]):
    """Events in creation order; only the organizer may change one."""

    label = "events"

    def __init__(self, snapshot: SnapshotStore):
        super().__init__(snapshot, Event.from_record)

    # --- LOOKUPS ---

    def find_by_organizer(self, organizer_id: str) -> List[Event]:
        return [e for e in self._items if e.organizer_id == organizer_id]

    def find_by_participant(self, user_id: str) -> List[Event]:
        return [e for e in self._items if user_id in e.participants]

    def find_by_category(self, category: str) -> List[Event]:
        return [e for e in self._items if e.category == category]

    def find_all_public(self) -> List[Event]:
        return [e for e in self._items if e.is_public]

    def find_with_filters(self, filters: Union[EventFilters, Dict[str, Any], None] = None) -> List[Event]:
        """Filter conjunctively, then stable-sort by date ascending."""
        if not isinstance(filters, EventFilters):
            filters = EventFilters.from_dict(filters)
        matched = [e for e in self._items if filters.matches(e)]
        return sorted(matched, key=lambda e: e.date)

    def _get(self, event_id: str) -> Event:
        event = self.find_by_id(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def _get_owned(self, event_id: str, acting_user_id: Optional[str], action: str) -> Event:
        event = self._get(event_id)
        if event.organizer_id != acting_user_id:
            raise UnauthorizedError(f"Only the event organizer can {action} this event")
        return event

    # --- LIFECYCLE ---

    def create(self, data: Dict[str, Any], organizer_id: str) -> Event:
        """
        Raises:
            ValidationError: data cannot form an Event.
        """
        event = Event.new(data, organizer_id)
        self._append(event)
        logger.info(f"[Events] Created {event.id} by {organizer_id}")
        return event

    def update(self, event_id: str, patch: Dict[str, Any], acting_user_id: Optional[str]) -> Event:
        """
        Raises:
            EventNotFoundError: No such event.
            UnauthorizedError: acting_user_id is not the organizer.
            ValidationError: The patch carries an unusable value.
            CapacityConflictError: The new capacity is below the current count.
        """
        with self._lock:
            event = self._get_owned(event_id, acting_user_id, "update")
            fields = clean_event_fields(patch or {})
            new_max = fields.get("max_participants", event.max_participants)
            if new_max is not None and event.participant_count() > new_max:
                raise CapacityConflictError(
                    f"max_participants cannot be lower than the "
                    f"{event.participant_count()} current registrations"
                )
            self._mutate(event, lambda e: e.apply_update(fields))

        logger.info(f"[Events] Updated {event_id} fields={sorted(fields)}")
        return event

    def delete(self, event_id: str, acting_user_id: Optional[str]) -> None:
        """
        Raises:
            EventNotFoundError: No such event.
            UnauthorizedError: acting_user_id is not the organizer.
        """
        with self._lock:
            self._get_owned(event_id, acting_user_id, "delete")
            self._remove_at(self._index_of(event_id))

        logger.info(f"[Events] Deleted {event_id}")

    # --- REGISTRATION ---

    def register_participant(self, event_id: str, user_id: str) -> Event:
        """
        Raises:
            EventNotFoundError: No such event.
            EventFullError: The event is at capacity.
            AlreadyRegisteredError: user_id already holds a spot.
        """
        with self._lock:
            event = self._get(event_id)
            self._mutate(event, lambda e: e.register_participant(user_id))

        logger.info(f"[Events] {user_id} registered for {event_id}")
        return event

    def unregister_participant(self, event_id: str, user_id: str) -> Event:
        """
        Raises:
            EventNotFoundError: No such event.
            NotRegisteredError: user_id is not registered.
        """
        with self._lock:
            event = self._get(event_id)
            self._mutate(event, lambda e: e.unregister_participant(user_id))

        logger.info(f"[Events] {user_id} unregistered from {event_id}")
        return event

    def release_user(self, user_id: str, then: Optional[Callable[[], Any]] = None) -> Tuple[int, int]:
        """
        Remove every trace of an account in one persisted write: events it
        organizes are deleted and its registrations elsewhere are withdrawn.

        then runs after the write, under the store lock (account deletion
        passes UserStore.delete). If then raises, the events are put back.

        Returns:
            tuple: (events deleted, registrations withdrawn)
        """
        def change(events: List[Event]) -> Tuple[int, int]:
            organized = [e for e in events if e.organizer_id == user_id]
            events[:] = [e for e in events if e.organizer_id != user_id]
            withdrawn = [e for e in events if user_id in e.participants]
            for event in withdrawn:
                event.unregister_participant(user_id)
            return len(organized), len(withdrawn)

        deleted, withdrawn = self._rewrite(change, then=then)

        logger.info(f"[Events] Released {user_id}: {deleted} events deleted, {withdrawn} registrations withdrawn")
        return deleted, withdrawn
