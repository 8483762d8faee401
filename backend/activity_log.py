"""
Per-user activity trail.

Every call to ``ActivityLog.record`` is emitted through ``logging`` and,
when it concerns a user, kept in memory so the user can later page
through their own history via ``GET /events/logs``.
"""

import logging
import threading
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from flask import current_app

logger = logging.getLogger("backend.activity")

MAX_ENTRIES_PER_USER = 1000

EXTENSION_KEY = "event_echo_activity"

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class ActivityLog:
    def __init__(self, max_entries: int = MAX_ENTRIES_PER_USER) -> None:
        self._entries: Dict[str, Deque[Dict[str, Any]]] = defaultdict(lambda: deque(maxlen=max_entries))
        self._lock = threading.Lock()

    def record(
        self,
        level: str,
        message: str,
        user_id: Optional[str] = None,
        event_id: Optional[str] = None,
        action: Optional[str] = None,
        **details: Any,
    ) -> Dict[str, Any]:
        """
        Log ``message`` at ``level`` ("info", "warn", "error", ...) and
        return the structured entry.
        """
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "message": message,
        }
        if user_id:
            entry["userId"] = user_id
        if event_id:
            entry["eventId"] = event_id
        if action:
            entry["action"] = action
        entry.update(details)

        metadata = ", ".join(
            f"{key}={value}" for key, value in (("userId", user_id), ("eventId", event_id), ("action", action)) if value
        )
        logger.log(LEVELS.get(level, logging.INFO), f"{message} - [{metadata}]" if metadata else message)

        if user_id:
            with self._lock:
                self._entries[user_id].append(entry)
        return entry

    def entries_for(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        action: Optional[str] = None,
        level: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Return a user's entries, newest first, filtered by an inclusive
        time window and case-insensitive action/level matches.
        """
        with self._lock:
            entries = list(self._entries.get(user_id, ()))

        if start is not None:
            entries = [e for e in entries if _as_datetime(e["timestamp"]) >= start]
        if end is not None:
            entries = [e for e in entries if _as_datetime(e["timestamp"]) <= end]
        if action:
            entries = [e for e in entries if e.get("action", "").lower() == action.lower()]
        if level:
            entries = [e for e in entries if e.get("level", "").lower() == level.lower()]

        # Newest first, including entries that share a timestamp
        entries.reverse()
        entries.sort(key=lambda e: e["timestamp"], reverse=True)
        return entries


def _as_datetime(timestamp: str) -> datetime:
    return datetime.fromisoformat(timestamp)


def parse_filter_datetime(val: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime used as a log filter bound.
    Naive values are taken as UTC.

    Raises:
        ValueError: the value is not a valid ISO-8601 string.
    """
    if not val:
        return None
    if val.endswith("Z"):
        val = val[:-1] + "+00:00"
    parsed = datetime.fromisoformat(val)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def get_activity_log() -> ActivityLog:
    """Return the activity log attached to the running Flask app."""
    return current_app.extensions[EXTENSION_KEY]
