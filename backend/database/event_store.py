"""
Event store: owns every event record, keyed by event id.

Validation of event fields lives here so the same rules apply to
creation and to partial updates.
"""

import logging
import re
from datetime import date, time as dt_time
from typing import Any, Dict, List, Optional, Tuple

from backend.database.identity_store import IdentityStore
from backend.database.models import Event, IdGenerator, utc_now_iso
from backend.errors import CapacityTooLowError, NotFoundError, UnauthorizedError, ValidationError

logger = logging.getLogger(__name__)

# --- CONSTANTS FOR VALIDATION ---
TITLE_MAX_LENGTH = 200
REQUIRED_FIELDS = ["title", "date", "time", "capacity"]
PATCHABLE_FIELDS = ["title", "description", "date", "time", "capacity"]


def parse_date(val: Any) -> Optional[date]:
    """
    Parse a ``YYYY-MM-DD`` string (or pass a date through).

    Returns:
        date: The parsed date, or None if invalid.
    """
    if isinstance(val, date):
        return val
    if not isinstance(val, str) or not val.strip():
        return None
    try:
        return date.fromisoformat(val.strip())
    except ValueError:
        return None


def parse_time(val: Any) -> Optional[str]:
    """Validate a local ``HH:MM[:SS]`` time string and return it stripped."""
    if not isinstance(val, str) or not val.strip():
        return None
    try:
        dt_time.fromisoformat(val.strip())
    except ValueError:
        return None
    return val.strip()


def parse_capacity(val: Any) -> Optional[int]:
    """Accept an int or a string of digits; anything else is invalid."""
    if isinstance(val, bool):
        return None
    if isinstance(val, int):
        return val
    if isinstance(val, str) and re.fullmatch(r"-?[0-9]+", val.strip()):
        return int(val.strip())
    return None


def _validate_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title cannot be empty")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title must be {TITLE_MAX_LENGTH} characters or less.")
    return title


def _validate_description(description: Any) -> str:
    if description is None:
        return ""
    if not isinstance(description, str):
        raise ValidationError("description must be a string")
    return description


def _validate_date(value: Any) -> date:
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError("Invalid date format. Use YYYY-MM-DD.")
    return parsed


def _validate_time(value: Any) -> str:
    parsed = parse_time(value)
    if parsed is None:
        raise ValidationError("Invalid time format. Use HH:MM.")
    return parsed


def _coerce_capacity(value: Any) -> int:
    capacity = parse_capacity(value)
    if capacity is None:
        raise ValidationError("capacity must be a positive integer")
    return capacity


class EventPatch:
    """
    A partial update that knows which fields were actually sent.

    A key that is absent keeps the stored value. A key that is present
    overwrites it, so ``{"title": ""}`` is an attempt to clear the title
    and is rejected rather than silently ignored.
    """

    def __init__(self, values: Optional[Dict[str, Any]] = None) -> None:
        self.values = {k: v for k, v in (values or {}).items() if k in PATCHABLE_FIELDS}

    @classmethod
    def from_json(cls, data: Any) -> "EventPatch":
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return cls(data)

    def __contains__(self, key: str) -> bool:
        return key in self.values

    def __bool__(self) -> bool:
        return bool(self.values)

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)


class EventStore:
    """
    Holds every event.

    Like the other stores it does no locking of its own; the lifecycle
    service wraps each check-then-mutate sequence in ``InMemoryDb.lock``.
    """

    def __init__(self, identity: IdentityStore, id_generator: Optional[IdGenerator] = None) -> None:
        self._events: Dict[str, Event] = {}
        self._identity = identity
        self._ids = id_generator or IdGenerator()

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: str) -> bool:
        return event_id in self._events

    # --- CREATE ---
    def create_event(
        self,
        owner_id: str,
        title: Any,
        description: Any,
        event_date: Any,
        event_time: Any,
        capacity: Any,
    ) -> Event:
        """
        Validate and insert a new event owned by ``owner_id``.

        Raises:
            ValidationError: a required field is missing or malformed.
            NotFoundError: the owner is not a known user.
        """
        supplied = {"title": title, "date": event_date, "time": event_time, "capacity": capacity}
        missing = [name for name in REQUIRED_FIELDS if supplied[name] in (None, "")]
        if missing:
            raise ValidationError("Missing required fields", required=REQUIRED_FIELDS)

        if self._identity.find_by_id(owner_id) is None:
            raise NotFoundError("User not found")

        parsed_capacity = _coerce_capacity(capacity)
        if parsed_capacity <= 0:
            raise ValidationError("capacity must be a positive integer")

        event = Event(
            id=self._ids.next_id(),
            title=_validate_title(title),
            description=_validate_description(description),
            date=_validate_date(event_date),
            time=_validate_time(event_time),
            capacity=parsed_capacity,
            created_by=owner_id,
        )
        self._events[event.id] = event
        return event

    # --- READ ---
    def get_event(self, event_id: str) -> Event:
        event = self._events.get(event_id)
        if event is None:
            raise NotFoundError("Event not found")
        return event

    def _require_owner(self, event: Event, requester_id: str, verb: str) -> None:
        if event.created_by != requester_id:
            raise UnauthorizedError(f"Unauthorized: Only the event creator can {verb} this event")

    # --- UPDATE ---
    def update_event(self, event_id: str, requester_id: str, patch: EventPatch) -> Tuple[Event, List[str]]:
        """
        Apply a partial update.

        Every check runs before the record is touched, so a rejected patch
        leaves the event exactly as it was.

        Returns:
            tuple: (the updated event, names of the fields whose value changed)
        """
        event = self.get_event(event_id)
        self._require_owner(event, requester_id, "update")

        new_values: Dict[str, Any] = {}
        if "capacity" in patch:
            capacity = _coerce_capacity(patch.get("capacity"))
            if capacity < 0:
                raise ValidationError("capacity must be a positive integer")
            if capacity < event.participant_count:
                raise CapacityTooLowError(event.participant_count)
            if capacity == 0:
                raise ValidationError("capacity must be a positive integer")
            new_values["capacity"] = capacity
        if "title" in patch:
            new_values["title"] = _validate_title(patch.get("title"))
        if "description" in patch:
            new_values["description"] = _validate_description(patch.get("description"))
        if "date" in patch:
            new_values["date"] = _validate_date(patch.get("date"))
        if "time" in patch:
            new_values["time"] = _validate_time(patch.get("time"))

        changed = [name for name in PATCHABLE_FIELDS if name in new_values and new_values[name] != getattr(event, name)]
        for name, value in new_values.items():
            setattr(event, name, value)
        event.updated_at = utc_now_iso()
        return event, changed

    # --- DELETE ---
    def delete_event(self, event_id: str, requester_id: str) -> List[str]:
        """
        Remove an event and return the ids of its participants so the
        caller can clean up the registration index and notify them.
        """
        event = self.get_event(event_id)
        self._require_owner(event, requester_id, "delete")
        del self._events[event_id]
        return sorted(event.participants)

    # --- LIST ---
    def build_view(self, event: Event, viewer_id: Optional[str]) -> Dict[str, Any]:
        """Project an event with the fields computed relative to ``viewer_id``."""
        creator = self._identity.find_by_id(event.created_by)
        is_user_registered = viewer_id in event.participants
        if is_user_registered:
            status = "registered"
        elif event.is_full:
            status = "full"
        else:
            status = "open"
        return {
            "id": event.id,
            "title": event.title,
            "description": event.description,
            "date": event.date.isoformat(),
            "time": event.time,
            "capacity": event.capacity,
            "participantCount": event.participant_count,
            "spotsRemaining": event.spots_remaining,
            "isUserRegistered": is_user_registered,
            "createdBy": {
                "id": creator.id if creator else event.created_by,
                "name": creator.name if creator else None,
            },
            "isFull": event.is_full,
            "registrationStatus": status,
        }

    def list_events(
        self,
        viewer_id: Optional[str],
        on_date: Optional[date] = None,
        query: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Return event views sorted by date ascending (creation order breaks
        ties), optionally restricted to one date and/or a case-insensitive
        substring of the title or description.
        """
        events = sorted(self._events.values(), key=lambda e: (e.date, int(e.id)))
        if on_date is not None:
            events = [e for e in events if e.date == on_date]
        if query:
            needle = query.lower()
            events = [e for e in events if needle in e.title.lower() or needle in e.description.lower()]
        return [self.build_view(e, viewer_id) for e in events]
