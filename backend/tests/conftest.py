import os
import threading

import pytest

# Ensure JWT_SECRET is set for tests
os.environ["JWT_SECRET"] = "test_secret"

from backend.activity_log import ActivityLog
from backend.auth_service.utils import create_token
from backend.database.db_connection import InMemoryDb
from backend.errors import NotificationError
from backend.events_service.service import EventLifecycleService
from backend.gateway.server import create_app
from backend.notification_service.dispatcher import NotificationDispatcher
from backend.notification_service.mailer import EmailTransport


class RecordingTransport(EmailTransport):
    """Collects every notification instead of sending; fails for chosen addresses."""

    def __init__(self, fail_for=()):
        super().__init__(provider="dev")
        self.sent = []
        self.fail_for = set(fail_for)
        self._lock = threading.Lock()

    def send(self, notification):
        if notification.recipient in self.fail_for:
            raise NotificationError("mailbox unavailable", notification.recipient)
        with self._lock:
            self.sent.append(notification)

    def recipients(self, subject=None):
        return sorted(n.recipient for n in self.sent if subject is None or n.subject == subject)


@pytest.fixture
def db():
    return InMemoryDb()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def dispatcher(transport):
    dispatcher = NotificationDispatcher(transport, max_workers=2)
    yield dispatcher
    dispatcher.shutdown()


@pytest.fixture
def activity():
    return ActivityLog()


@pytest.fixture
def service(db, dispatcher, activity):
    return EventLifecycleService(db, dispatcher, activity)


@pytest.fixture
def app(db, dispatcher, activity):
    app = create_app(db=db, dispatcher=dispatcher, activity=activity)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(db):
    """
    Insert a user straight into the store and return it. Password hashing
    is skipped; use the /auth routes when the hash matters.
    """
    counter = {"n": 0}

    def _make(name=None, email=None, role="attendee"):
        counter["n"] += 1
        name = name or f"User {counter['n']}"
        email = email or f"user{counter['n']}@example.com"
        with db.lock:
            user = db.users.create_user(email, "not-a-real-hash", name, role)
            db.registrations.ensure_user(user.id)
        return user

    return _make


@pytest.fixture
def auth_header():
    def _header(user):
        return {"Authorization": f"Bearer {create_token(user.id, user.role)}"}

    return _header


@pytest.fixture
def event_payload():
    return {
        "title": "Python Meetup",
        "description": "Talks and pizza",
        "date": "2025-06-01",
        "time": "18:30",
        "capacity": 2,
    }
