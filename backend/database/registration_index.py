"""
Registration index: which events each user is registered for.

The participant set on each ``Event`` and the per-user sets kept here are
two views of the same relation; every method keeps them in step.
"""

from typing import Dict, Iterable, Set

from backend.database.models import Event
from backend.errors import AlreadyRegisteredError, EventFullError


class RegistrationIndex:
    def __init__(self) -> None:
        self._events_by_user: Dict[str, Set[str]] = {}

    def ensure_user(self, user_id: str) -> None:
        self._events_by_user.setdefault(user_id, set())

    def register(self, user_id: str, event: Event) -> None:
        """
        Add ``user_id`` to ``event``.

        Both checks run before either set is touched, so a rejected
        registration leaves no trace on either side.

        Raises:
            EventFullError: the event has no spots left.
            AlreadyRegisteredError: the user is already a participant.
        """
        if event.is_full:
            raise EventFullError()
        if user_id in event.participants:
            raise AlreadyRegisteredError()

        event.participants.add(user_id)
        self._events_by_user.setdefault(user_id, set()).add(event.id)

    def unregister_all(self, event_id: str, participant_ids: Iterable[str]) -> None:
        """Drop ``event_id`` from every given user's set. Missing entries are ignored."""
        for user_id in participant_ids:
            registered = self._events_by_user.get(user_id)
            if registered is not None:
                registered.discard(event_id)

    def list_for_user(self, user_id: str) -> Set[str]:
        return set(self._events_by_user.get(user_id, ()))

    def is_registered(self, user_id: str, event_id: str) -> bool:
        return event_id in self._events_by_user.get(user_id, ())
