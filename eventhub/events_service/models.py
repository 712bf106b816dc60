"""
Event model for the events service.

Holds the admission-control primitive: register_participant is a strict
first-come-first-served counting gate with no waitlist. Capacity is
checked before duplicates.
"""

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from eventhub.core.config import EVENT_STATUSES
from eventhub.core.exceptions import (
    AlreadyRegisteredError,
    EventFullError,
    NotRegisteredError,
    ValidationError,
)
from eventhub.core.timeutil import parse_dt, require_dt, to_iso, utc_now
from eventhub.core.validation import is_text

DEFAULT_DURATION = 60  # minutes

UPDATABLE_FIELDS = (
    "title", "description", "date", "time", "duration",
    "max_participants", "status", "category", "is_public", "meeting_link",
)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def clean_event_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate and coerce the updatable fields present in data.

    Unknown keys are dropped. Returns a new dict ready to be assigned.

    Raises:
        ValidationError: A present field carries an unusable value.
    """
    cleaned: Dict[str, Any] = {}
    for key in UPDATABLE_FIELDS:
        if key not in data:
            continue
        value = data[key]

        if key == "title":
            if not is_text(value) or not value.strip():
                raise ValidationError("Title cannot be empty")
            value = value.strip()
        elif key == "description":
            if value is not None and not is_text(value):
                raise ValidationError("description must be a string")
            value = (value or "").strip()
        elif key == "date":
            parsed = parse_dt(value)
            if parsed is None:
                raise ValidationError("Invalid date format. Use ISO-8601.")
            value = parsed
        elif key == "time":
            if value is not None and not is_text(value):
                raise ValidationError("time must be a string")
        elif key == "duration":
            if not _is_int(value) or value <= 0:
                raise ValidationError("duration must be a positive number of minutes")
        elif key == "max_participants":
            if value is not None and (not _is_int(value) or value < 1):
                raise ValidationError("max_participants must be a positive integer or null")
        elif key == "status":
            if value not in EVENT_STATUSES:
                raise ValidationError(f"status must be one of: {', '.join(EVENT_STATUSES)}")
        elif key == "category":
            if not is_text(value) or not value.strip():
                raise ValidationError("category cannot be empty")
            value = value.strip()
        elif key == "is_public":
            if not isinstance(value, bool):
                raise ValidationError("is_public must be a boolean")
        elif key == "meeting_link":
            if value is not None and not is_text(value):
                raise ValidationError("meeting_link must be a string")
            value = value or None

        cleaned[key] = value
    return cleaned


@dataclass
class Event:
    id: str
    organizer_id: str
    title: str
    date: datetime
    description: str = ""
    time: Optional[str] = None
    duration: int = DEFAULT_DURATION
    category: str = "general"
    meeting_link: Optional[str] = None
    is_public: bool = True
    status: str = "scheduled"
    max_participants: Optional[int] = None
    participants: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def new(cls, data: Dict[str, Any], organizer_id: str) -> "Event":
        """
        Build a validated event owned by organizer_id.

        Raises:
            ValidationError: Missing title/date or an unusable field value.
        """
        if not organizer_id:
            raise ValidationError("organizer_id is required")
        if not data.get("title"):
            raise ValidationError("title is required")
        if not data.get("date"):
            raise ValidationError("date is required")

        fields = clean_event_fields(data)
        now = utc_now()
        return cls(
            id=str(uuid.uuid4()),
            organizer_id=organizer_id,
            created_at=now,
            updated_at=now,
            **fields,
        )

    # --- ADMISSION CONTROL ---

    def register_participant(self, user_id: str) -> None:
        """
        Raises:
            EventFullError: The event is at capacity.
            AlreadyRegisteredError: user_id already holds a spot.
        """
        if self.max_participants is not None and len(self.participants) >= self.max_participants:
            raise EventFullError(self.id)
        if user_id in self.participants:
            raise AlreadyRegisteredError(self.id, user_id)
        self.participants.append(user_id)
        self.updated_at = utc_now()

    def unregister_participant(self, user_id: str) -> None:
        """
        Raises:
            NotRegisteredError: user_id is not registered.
        """
        if user_id not in self.participants:
            raise NotRegisteredError(self.id, user_id)
        self.participants.remove(user_id)
        self.updated_at = utc_now()

    def is_registered(self, user_id: str) -> bool:
        return user_id in self.participants

    def participant_count(self) -> int:
        return len(self.participants)

    def available_spots(self) -> Optional[int]:
        """Remaining capacity, or None when the event is unlimited."""
        if self.max_participants is None:
            return None
        return self.max_participants - len(self.participants)

    # --- MUTATIONS ---

    def apply_update(self, patch: Dict[str, Any]) -> None:
        """Assign the updatable fields present in patch and refresh updated_at."""
        for key, value in clean_event_fields(patch).items():
            setattr(self, key, value)
        self.updated_at = utc_now()

    def is_past(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) > self.date

    def is_upcoming(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) < self.date

    # --- VIEWS ---

    def _base_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "date": to_iso(self.date),
            "time": self.time,
            "duration": self.duration,
            "max_participants": self.max_participants,
            "participant_count": self.participant_count(),
            "available_spots": self.available_spots(),
            "status": self.status,
            "category": self.category,
            "is_public": self.is_public,
            "meeting_link": self.meeting_link,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    def to_public_dict(self) -> Dict[str, Any]:
        """Listing view: organizer id and counts, no participant list."""
        data = self._base_dict()
        data["organizer_id"] = self.organizer_id
        return data

    def to_organizer_dict(self) -> Dict[str, Any]:
        """Owner view: the public view plus the ordered participant ids."""
        data = self.to_public_dict()
        data["participants"] = list(self.participants)
        return data

    def to_registrant_dict(self) -> Dict[str, Any]:
        """What a registered attendee sees: no organizer internals."""
        return self._base_dict()

    def to_stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utc_now()
        count = self.participant_count()
        if self.max_participants:
            rate = f"{count / self.max_participants * 100:.2f}%"
        else:
            rate = "Unlimited"
        seconds_left = (self.date - now).total_seconds()
        return {
            "event_id": self.id,
            "title": self.title,
            "total_registrations": count,
            "max_participants": self.max_participants,
            "available_spots": self.available_spots(),
            "registration_rate": rate,
            "status": self.status,
            "days_until_event": math.ceil(seconds_left / 86400),
            "created_at": to_iso(self.created_at),
            "last_updated": to_iso(self.updated_at),
        }

    # --- PERSISTENCE ---

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "organizer_id": self.organizer_id,
            "title": self.title,
            "description": self.description,
            "date": to_iso(self.date),
            "time": self.time,
            "duration": self.duration,
            "category": self.category,
            "meeting_link": self.meeting_link,
            "is_public": self.is_public,
            "status": self.status,
            "max_participants": self.max_participants,
            "participants": list(self.participants),
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Event":
        """Rehydrate a stored record into a full Event, re-parsing dates."""
        participants = record.get("participants") or []
        if not isinstance(participants, list):
            raise ValueError("participants must be a list")
        max_participants = record.get("max_participants")
        return cls(
            id=str(record["id"]),
            organizer_id=str(record["organizer_id"]),
            title=record["title"],
            description=record.get("description") or "",
            date=require_dt(record["date"], "date"),
            time=record.get("time"),
            duration=int(record.get("duration") or DEFAULT_DURATION),
            category=record.get("category") or "general",
            meeting_link=record.get("meeting_link"),
            is_public=bool(record.get("is_public", True)),
            status=record.get("status") or "scheduled",
            max_participants=int(max_participants) if max_participants is not None else None,
            participants=[str(p) for p in participants],
            created_at=require_dt(record["created_at"], "created_at"),
            updated_at=require_dt(record["updated_at"], "updated_at"),
        )

    def restore(self, record: Dict[str, Any]) -> None:
        """Reset every field from a record produced by to_record()."""
        self.__dict__.update(vars(Event.from_record(record)))
