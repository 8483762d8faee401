"""
In-memory database handle.
Provides InMemoryDb and get_db() for use by services and routes.
"""

import threading

from flask import current_app

from backend.database.event_store import EventStore
from backend.database.identity_store import IdentityStore
from backend.database.models import IdGenerator
from backend.database.registration_index import RegistrationIndex

EXTENSION_KEY = "event_echo_db"


class InMemoryDb:
    """
    Process-local replacement for the relational database.

    One instance is built by the app factory and passed to every service;
    its lifetime is the lifetime of the process. ``lock`` serializes every
    check-then-mutate sequence across the three stores.

    Usage:
        with db.lock:
            event = db.events.get_event(event_id)
            db.registrations.register(user_id, event)
    """

    def __init__(self) -> None:
        ids = IdGenerator()
        self.lock = threading.RLock()
        self.users = IdentityStore(ids)
        self.events = EventStore(self.users, ids)
        self.registrations = RegistrationIndex()


def get_db() -> InMemoryDb:
    """
    Return the database attached to the running Flask app.

    Raises:
        RuntimeError: outside an application context.
    """
    return current_app.extensions[EXTENSION_KEY]
