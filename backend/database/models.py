"""
Record types held by the in-memory database.

Each dataclass mirrors what used to be a table row: users with their
embedded profile, and events with their participant set.
"""

import threading
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Set

VALID_ROLES = ["organizer", "attendee"]
DEFAULT_ROLE = "attendee"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class IdGenerator:
    """
    Produces millisecond-timestamp ids that are unique and sort in
    creation order, even when two records are created in the same
    millisecond.
    """

    def __init__(self) -> None:
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            candidate = int(time.time() * 1000)
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return str(candidate)


@dataclass
class UserProfile:
    bio: str = ""
    interests: List[str] = field(default_factory=list)
    events_organized: int = 0
    events_attended: int = 0
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bio": self.bio,
            "interests": list(self.interests),
            "eventsOrganized": self.events_organized,
            "eventsAttended": self.events_attended,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class User:
    id: str
    email: str
    password_hash: str
    name: str
    role: str = DEFAULT_ROLE
    profile: UserProfile = field(default_factory=UserProfile)

    def to_dict(self) -> Dict[str, Any]:
        """Public projection; never includes the password hash."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "profile": self.profile.to_dict(),
        }


@dataclass
class Event:
    id: str
    title: str
    description: str
    date: date
    time: str
    capacity: int
    created_by: str
    participants: Set[str] = field(default_factory=set)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: Optional[str] = None

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    @property
    def spots_remaining(self) -> int:
        return self.capacity - len(self.participants)

    @property
    def is_full(self) -> bool:
        return len(self.participants) >= self.capacity

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "date": self.date.isoformat(),
            "time": self.time,
        }
