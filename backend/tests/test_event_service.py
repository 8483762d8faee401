from concurrent.futures import ThreadPoolExecutor

import pytest

from backend.database.event_store import EventPatch
from backend.errors import (
    AlreadyRegisteredError,
    CapacityTooLowError,
    EventFullError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)


@pytest.fixture
def owner(make_user):
    return make_user(name="Owner", email="owner@example.com", role="organizer")


@pytest.fixture
def event(service, owner, event_payload):
    return service.create_event(owner.id, event_payload)


def test_create_event_counts_towards_organizer(service, owner, event):
    assert event.created_by == owner.id
    assert owner.profile.events_organized == 1


def test_create_event_validation_is_logged(service, owner, activity):
    with pytest.raises(ValidationError):
        service.create_event(owner.id, {"title": "No date"})

    entries = activity.entries_for(owner.id, action="CREATE_EVENT_VALIDATION_ERROR")
    assert len(entries) == 1
    assert entries[0]["level"] == "warn"


def test_register_returns_spots_remaining(service, event, make_user):
    a, b, c = make_user(), make_user(), make_user()

    assert service.register(event.id, a.id)["spotsRemaining"] == 1
    assert service.register(event.id, b.id)["spotsRemaining"] == 0
    with pytest.raises(EventFullError):
        service.register(event.id, c.id)

    assert event.participant_count == 2
    assert a.profile.events_attended == 1


def test_register_twice(service, event, make_user):
    a = make_user()
    service.register(event.id, a.id)

    with pytest.raises(AlreadyRegisteredError):
        service.register(event.id, a.id)
    assert event.participant_count == 1
    assert a.profile.events_attended == 1


def test_register_unknown_event(service, make_user):
    with pytest.raises(NotFoundError):
        service.register("missing", make_user().id)


def test_register_sends_confirmation(service, dispatcher, transport, event, make_user):
    a = make_user(email="a@example.com")
    service.register(event.id, a.id)

    assert dispatcher.flush(timeout=5)
    assert transport.recipients("Event Registration Confirmation") == ["a@example.com"]


def test_concurrent_registrations_never_oversubscribe(service, owner, make_user):
    capacity = 5
    event = service.create_event(owner.id, {
        "title": "Hot ticket", "date": "2025-07-01", "time": "10:00", "capacity": capacity
    })
    users = [make_user() for _ in range(40)]

    def attempt(user):
        try:
            service.register(event.id, user.id)
            return "ok"
        except EventFullError:
            return "full"

    with ThreadPoolExecutor(max_workers=16) as pool:
        outcomes = list(pool.map(attempt, users))

    assert outcomes.count("ok") == capacity
    assert outcomes.count("full") == len(users) - capacity
    assert event.participant_count == capacity
    registered = [u for u in users if service.db.registrations.is_registered(u.id, event.id)]
    assert {u.id for u in registered} == event.participants


def test_update_capacity_too_low_leaves_event_unchanged(service, owner, event, make_user):
    service.register(event.id, make_user().id)

    with pytest.raises(CapacityTooLowError) as excinfo:
        service.update_event(event.id, owner.id, EventPatch({"capacity": 0}))

    assert excinfo.value.current_participants == 1
    assert event.capacity == 2
    assert event.updated_at is None


def test_update_by_non_owner_is_logged(service, event, make_user, activity):
    stranger = make_user()
    with pytest.raises(UnauthorizedError):
        service.update_event(event.id, stranger.id, EventPatch({"title": "Hijacked"}))

    assert activity.entries_for(stranger.id, action="UPDATE_EVENT_UNAUTHORIZED")


def test_update_unknown_event_is_logged(service, owner, activity):
    with pytest.raises(NotFoundError):
        service.update_event("missing", owner.id, EventPatch({"title": "x"}))

    assert activity.entries_for(owner.id, action="UPDATE_EVENT_NOT_FOUND")


def test_date_change_notifies_participants(service, dispatcher, transport, owner, event, make_user):
    a = make_user(email="a@example.com")
    b = make_user(email="b@example.com")
    service.register(event.id, a.id)
    service.register(event.id, b.id)
    dispatcher.flush(timeout=5)
    transport.sent.clear()

    snapshot, changed = service.update_event(event.id, owner.id, EventPatch({"date": "2025-06-02"}))

    assert changed == ["date"]
    assert snapshot["date"] == "2025-06-02"
    assert snapshot["participantCount"] == 2
    assert dispatcher.flush(timeout=5)
    assert transport.recipients("Event Update Notification") == ["a@example.com", "b@example.com"]
    assert "New date: 2025-06-02" in transport.sent[0].body


def test_title_change_does_not_notify(service, dispatcher, transport, owner, event, make_user):
    service.register(event.id, make_user().id)
    dispatcher.flush(timeout=5)
    transport.sent.clear()

    service.update_event(event.id, owner.id, EventPatch({"title": "New title", "date": "2025-06-01"}))

    assert dispatcher.flush(timeout=5)
    assert transport.sent == []


def test_update_commits_even_if_notification_fails(service, dispatcher, transport, owner, make_user):
    transport.fail_for = {"a@example.com"}
    event = service.create_event(owner.id, {"title": "T", "date": "2025-06-01", "time": "10:00", "capacity": 3})
    service.register(event.id, make_user(email="a@example.com").id)
    service.register(event.id, make_user(email="b@example.com").id)

    snapshot, changed = service.update_event(event.id, owner.id, EventPatch({"time": "11:00"}))

    assert changed == ["time"]
    assert event.time == "11:00"
    assert dispatcher.flush(timeout=5)
    assert transport.recipients("Event Update Notification") == ["b@example.com"]


def test_delete_cascades_and_counts(service, dispatcher, transport, owner, make_user):
    event = service.create_event(owner.id, {"title": "T", "date": "2025-06-01", "time": "10:00", "capacity": 3})
    users = [make_user() for _ in range(3)]
    for user in users:
        service.register(event.id, user.id)

    details = service.delete_event(event.id, owner.id)

    assert details == {"id": event.id, "title": "T", "participantsNotified": 3}
    assert event.id not in service.db.events
    for user in users:
        assert service.db.registrations.list_for_user(user.id) == set()
        assert user.profile.events_attended == 0
    assert owner.profile.events_organized == 0
    assert dispatcher.flush(timeout=5)
    assert len(transport.recipients("Event Cancellation Notice")) == 3


def test_delete_by_non_owner(service, event, make_user):
    with pytest.raises(UnauthorizedError):
        service.delete_event(event.id, make_user().id)
    assert event.id in service.db.events


def test_list_user_events(service, owner, make_user):
    later = service.create_event(owner.id, {"title": "Later", "date": "2025-08-01", "time": "10:00", "capacity": 3})
    sooner = service.create_event(owner.id, {"title": "Sooner", "date": "2025-02-01", "time": "10:00", "capacity": 3})
    user = make_user()
    service.register(later.id, user.id)
    service.register(sooner.id, user.id)

    assert [e["title"] for e in service.list_user_events(user.id)] == ["Sooner", "Later"]
    assert service.list_user_events(owner.id) == []
