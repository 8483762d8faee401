"""
Domain error taxonomy shared by the stores, the lifecycle service and
the HTTP layer.

Every error knows its HTTP status and how to render itself as the JSON
body the routes return, so blueprints can simply let them propagate to
the gateway's error handler.
"""

from typing import Any, Dict, Optional


class EventEchoError(Exception):
    """Base class for all domain errors."""

    status_code = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        body.update(self.details)
        return body


class ValidationError(EventEchoError):
    """Missing or malformed input."""

    status_code = 400


class NotFoundError(EventEchoError):
    status_code = 404


class UnauthorizedError(EventEchoError):
    """A user tried to mutate a record they do not own."""

    status_code = 403


class ConflictError(EventEchoError):
    """The request collides with current state (capacity, duplicates)."""

    status_code = 400


class EventFullError(ConflictError):
    def __init__(self, message: str = "Event is full") -> None:
        super().__init__(message)


class AlreadyRegisteredError(ConflictError):
    def __init__(self, message: str = "Already registered for this event") -> None:
        super().__init__(message)


class CapacityTooLowError(ConflictError):
    def __init__(self, current_participants: int) -> None:
        super().__init__(
            "New capacity cannot be less than current number of participants",
            currentParticipants=current_participants,
        )
        self.current_participants = current_participants


class DuplicateEmailError(ConflictError):
    def __init__(self, message: str = "Email already registered") -> None:
        super().__init__(message)


class NotificationError(EventEchoError):
    """
    Delivery of a single notification failed.

    Only ever raised inside the dispatcher's workers; it is logged there
    and never reaches a caller.
    """

    def __init__(self, message: str, recipient: Optional[str] = None) -> None:
        super().__init__(message)
        self.recipient = recipient
