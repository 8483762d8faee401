"""
Event lifecycle service: create, update, delete, register and list.

Every check-then-mutate sequence runs under ``InMemoryDb.lock``. Anything
that talks to the outside world (notifications) is prepared inside the
lock and dispatched only after it has been released, so a slow mail
server never holds up other requests.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app

from backend.activity_log import ActivityLog
from backend.database.db_connection import InMemoryDb
from backend.database.event_store import EventPatch
from backend.database.models import Event
from backend.errors import EventEchoError, NotFoundError, UnauthorizedError, ValidationError
from backend.notification_service.dispatcher import NotificationDispatcher
from backend.notification_service.mailer import (
    Notification,
    cancellation_notice,
    registration_confirmation,
    update_notice,
)

NOTIFY_ON_CHANGE = ("date", "time")

EXTENSION_KEY = "event_echo_events"


class EventLifecycleService:
    def __init__(self, db: InMemoryDb, dispatcher: NotificationDispatcher, activity: ActivityLog) -> None:
        self.db = db
        self.dispatcher = dispatcher
        self.activity = activity

    def _notify(self, notifications: List[Notification]) -> None:
        if notifications:
            self.dispatcher.dispatch(notifications)

    # --- CREATE ---
    def create_event(self, user_id: str, data: Dict[str, Any]) -> Event:
        """
        Create an event owned by ``user_id``.

        Raises:
            ValidationError: missing or malformed fields.
        """
        try:
            with self.db.lock:
                event = self.db.events.create_event(
                    user_id,
                    data.get("title"),
                    data.get("description"),
                    data.get("date"),
                    data.get("time"),
                    data.get("capacity"),
                )
                self.db.users.get_user(user_id).profile.events_organized += 1
        except ValidationError as e:
            self.activity.record(
                "warn",
                f"Event creation rejected: {e.message}",
                user_id=user_id,
                action="CREATE_EVENT_VALIDATION_ERROR",
            )
            raise

        self.activity.record(
            "info",
            "Event created successfully",
            user_id=user_id,
            event_id=event.id,
            action="CREATE_EVENT",
            metadata={"title": event.title, "date": event.date.isoformat(), "time": event.time},
        )
        return event

    # --- READ ---
    def get_event_view(self, event_id: str, viewer_id: str) -> Dict[str, Any]:
        with self.db.lock:
            event = self.db.events.get_event(event_id)
            return self.db.events.build_view(event, viewer_id)

    def list_events(
        self, viewer_id: str, on_date: Optional[date] = None, query: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        with self.db.lock:
            return self.db.events.list_events(viewer_id, on_date=on_date, query=query)

    def list_user_events(self, user_id: str) -> List[Dict[str, Any]]:
        """Summaries of the events ``user_id`` is registered for, by date."""
        with self.db.lock:
            event_ids = self.db.registrations.list_for_user(user_id)
            events = [self.db.events.get_event(eid) for eid in event_ids if eid in self.db.events]
        events.sort(key=lambda e: (e.date, int(e.id)))
        return [e.summary() for e in events]

    # --- UPDATE ---
    def update_event(self, event_id: str, user_id: str, patch: EventPatch) -> Tuple[Dict[str, Any], List[str]]:
        """
        Apply ``patch`` to an event the caller owns.

        When the date or time actually changes, every participant is told
        about it. The update stands whatever happens to those emails.

        Returns:
            tuple: (snapshot of the updated event, names of changed fields)
        """
        try:
            with self.db.lock:
                event, changed = self.db.events.update_event(event_id, user_id, patch)
                snapshot = {
                    "id": event.id,
                    "title": event.title,
                    "description": event.description,
                    "date": event.date.isoformat(),
                    "time": event.time,
                    "capacity": event.capacity,
                    "participantCount": event.participant_count,
                    "updatedAt": event.updated_at,
                }
                notifications = []
                if any(name in changed for name in NOTIFY_ON_CHANGE):
                    contacts = self.db.users.contact_addresses(sorted(event.participants))
                    notifications = [update_notice(email, event) for _, email in contacts]
        except NotFoundError:
            self.activity.record(
                "warn",
                "Update attempted on non-existent event",
                user_id=user_id,
                event_id=event_id,
                action="UPDATE_EVENT_NOT_FOUND",
            )
            raise
        except UnauthorizedError:
            self.activity.record(
                "warn",
                "Unauthorized event update attempt",
                user_id=user_id,
                event_id=event_id,
                action="UPDATE_EVENT_UNAUTHORIZED",
            )
            raise

        self._notify(notifications)
        self.activity.record(
            "info",
            "Event updated successfully",
            user_id=user_id,
            event_id=event_id,
            action="UPDATE_EVENT",
            metadata={"changedFields": changed, "updatedAt": snapshot["updatedAt"]},
        )
        return snapshot, changed

    # --- DELETE ---
    def delete_event(self, event_id: str, user_id: str) -> Dict[str, Any]:
        """
        Delete an event the caller owns and cascade the removal through the
        registration index.

        ``participantsNotified`` counts every participant a cancellation was
        addressed to, whether or not delivery later succeeds.
        """
        try:
            with self.db.lock:
                event = self.db.events.get_event(event_id)
                participants = self.db.events.delete_event(event_id, user_id)
                self.db.registrations.unregister_all(event_id, participants)

                owner = self.db.users.find_by_id(event.created_by)
                if owner is not None:
                    owner.profile.events_organized = max(0, owner.profile.events_organized - 1)
                for participant_id in participants:
                    participant = self.db.users.find_by_id(participant_id)
                    if participant is not None:
                        participant.profile.events_attended = max(0, participant.profile.events_attended - 1)

                contacts = self.db.users.contact_addresses(participants)
                notifications = [cancellation_notice(email, event) for _, email in contacts]
        except EventEchoError as e:
            self.activity.record(
                "warn",
                f"Event deletion rejected: {e.message}",
                user_id=user_id,
                event_id=event_id,
                action="DELETE_EVENT_ERROR",
            )
            raise

        self._notify(notifications)
        self.activity.record(
            "info",
            "Event deleted successfully",
            user_id=user_id,
            event_id=event_id,
            action="DELETE_EVENT",
            metadata={"participantsNotified": len(participants)},
        )
        return {"id": event_id, "title": event.title, "participantsNotified": len(participants)}

    # --- REGISTER ---
    def register(self, event_id: str, user_id: str) -> Dict[str, Any]:
        """
        Register ``user_id`` for an event.

        Raises:
            NotFoundError: unknown event or user.
            EventFullError: no spots left.
            AlreadyRegisteredError: the user is already a participant.
        """
        with self.db.lock:
            event = self.db.events.get_event(event_id)
            user = self.db.users.get_user(user_id)
            self.db.registrations.register(user_id, event)
            user.profile.events_attended += 1
            result = {
                "eventId": event.id,
                "title": event.title,
                "date": event.date.isoformat(),
                "time": event.time,
                "spotsRemaining": event.spots_remaining,
            }
            confirmation = registration_confirmation(user.email, event)

        self._notify([confirmation])
        self.activity.record(
            "info",
            "User registered for event",
            user_id=user_id,
            event_id=event_id,
            action="REGISTER_EVENT",
        )
        return result


def get_events_service() -> EventLifecycleService:
    """Return the lifecycle service attached to the running Flask app."""
    return current_app.extensions[EXTENSION_KEY]
