"""
Identity store: user records keyed by email, with an id -> email
secondary index so lookups by id never scan the whole map.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from backend.database.models import DEFAULT_ROLE, VALID_ROLES, IdGenerator, User, utc_now_iso
from backend.errors import DuplicateEmailError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ["name", "bio", "interests"]


class IdentityStore:
    """
    Holds every registered user.

    Not thread-safe on its own; callers that combine a lookup with a
    mutation hold ``InMemoryDb.lock``.
    """

    def __init__(self, id_generator: Optional[IdGenerator] = None) -> None:
        self._users_by_email: Dict[str, User] = {}
        self._email_by_id: Dict[str, str] = {}
        self._ids = id_generator or IdGenerator()

    def __len__(self) -> int:
        return len(self._users_by_email)

    def create_user(self, email: str, password_hash: str, name: str, role: Optional[str] = None) -> User:
        """
        Insert a new user.

        Raises:
            ValidationError: email or name missing, or unknown role.
            DuplicateEmailError: the email is already registered.
        """
        if not email or not name:
            raise ValidationError("Email and name required")
        role = role or DEFAULT_ROLE
        if role not in VALID_ROLES:
            raise ValidationError(f"role must be one of: {', '.join(VALID_ROLES)}")
        if email in self._users_by_email:
            raise DuplicateEmailError()

        user = User(id=self._ids.next_id(), email=email, password_hash=password_hash, name=name, role=role)
        self._users_by_email[email] = user
        self._email_by_id[user.id] = email
        logger.info(f"Created user {user.id} ({role})")
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        return self._users_by_email.get(email)

    def find_by_id(self, user_id: str) -> Optional[User]:
        email = self._email_by_id.get(user_id)
        if email is None:
            return None
        return self._users_by_email.get(email)

    def get_user(self, user_id: str) -> User:
        user = self.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def update_profile(self, user_id: str, changes: Dict[str, Any]) -> User:
        """
        Apply profile changes. Only ``name``, ``bio`` and ``interests`` are
        accepted; other keys are ignored.
        """
        user = self.get_user(user_id)
        fields = {k: v for k, v in changes.items() if k in PROFILE_FIELDS}
        if not fields:
            raise ValidationError("No valid fields provided")

        if "name" in fields and (not isinstance(fields["name"], str) or not fields["name"].strip()):
            raise ValidationError("name must be a non-empty string")
        if "bio" in fields and not isinstance(fields["bio"], str):
            raise ValidationError("bio must be a string")
        if "interests" in fields:
            interests = fields["interests"]
            if not isinstance(interests, list) or not all(isinstance(i, str) for i in interests):
                raise ValidationError("interests must be a list of strings")

        if "name" in fields:
            user.name = fields["name"].strip()
        if "bio" in fields:
            user.profile.bio = fields["bio"]
        if "interests" in fields:
            user.profile.interests = list(fields["interests"])
        user.profile.updated_at = utc_now_iso()
        return user

    def contact_addresses(self, user_ids: Iterable[str]) -> List[Tuple[str, str]]:
        """Resolve user ids to ``(user_id, email)`` pairs, skipping unknown ids."""
        contacts = []
        for user_id in user_ids:
            email = self._email_by_id.get(user_id)
            if email is not None:
                contacts.append((user_id, email))
        return contacts
