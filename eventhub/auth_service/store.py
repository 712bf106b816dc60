"""
UserStore: the authoritative collection of accounts.
Lookups are linear scans; the deployment target is small.
"""

import logging
from typing import Any, Dict, List, Optional

from eventhub.auth_service.models import User, check_text_fields, normalize_email
from eventhub.core.exceptions import (
    AccountDeactivatedError,
    DuplicateKeyError,
    InvalidCredentialsError,
    UserNotFoundError,
    ValidationError,
)
from eventhub.database.record_store import RecordStore
from eventhub.database.snapshot import SnapshotStore

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "email")


class UserStore(RecordStore[User]):
    """Accounts keyed by id, with case-insensitive unique emails."""

    label = "users"

    def __init__(self, snapshot: SnapshotStore):
        super().__init__(snapshot, User.from_record)

    # --- LOOKUPS ---

    def find_by_email(self, email: str) -> Optional[User]:
        wanted = normalize_email(email)
        if not wanted:
            return None
        for user in self._items:
            if user.email == wanted:
                return user
        return None

    def find_by_role(self, role: str) -> List[User]:
        return [user for user in self._items if user.role == role]

    def _get(self, user_id: str) -> User:
        user = self.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    # --- LIFECYCLE ---

    def create(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: str = "attendee",
    ) -> User:
        """
        Create and persist a new account.

        Raises:
            DuplicateKeyError: The email is already registered (any casing).
            ValidationError: The input cannot form a User.
        """
        with self._lock:
            if self.find_by_email(email) is not None:
                raise DuplicateKeyError("email", normalize_email(email))
            user = User.new(email, password, first_name, last_name, role)
            self._append(user)

        logger.info(f"[Users] Created {user.id} ({user.role})")
        return user

    def update(self, user_id: str, patch: Dict[str, Any]) -> User:
        """
        Apply a profile patch (first_name, last_name, email).

        Raises:
            UserNotFoundError: No such user.
            DuplicateKeyError: The new email belongs to another account.
            ValidationError: A field is not usable text, or the email is empty.
        """
        fields = {k: v for k, v in (patch or {}).items() if k in PROFILE_FIELDS and v is not None}
        check_text_fields(**fields)

        with self._lock:
            user = self._get(user_id)
            if "email" in fields:
                new_email = normalize_email(fields["email"])
                if not new_email:
                    raise ValidationError("Email cannot be empty")
                owner = self.find_by_email(new_email)
                if owner is not None and owner.id != user.id:
                    raise DuplicateKeyError("email", new_email)
            self._mutate(user, lambda u: u.apply_profile_update(**fields))

        logger.info(f"[Users] Updated {user_id} fields={sorted(fields)}")
        return user

    def change_password(self, user_id: str, current_password: str, new_password: str) -> User:
        """
        Raises:
            UserNotFoundError: No such user.
            InvalidCredentialsError: current_password does not match.
        """
        with self._lock:
            user = self._get(user_id)
            if not user.verify_password(current_password):
                raise InvalidCredentialsError("Current password is incorrect")
            self._mutate(user, lambda u: u.set_password(new_password))

        logger.info(f"[Users] Password changed for {user_id}")
        return user

    def deactivate(self, user_id: str) -> User:
        with self._lock:
            user = self._get(user_id)
            self._mutate(user, lambda u: u.deactivate())

        logger.info(f"[Users] Deactivated {user_id}")
        return user

    def delete(self, user_id: str) -> None:
        """
        Raises:
            UserNotFoundError: No such user.
        """
        with self._lock:
            index = self._index_of(user_id)
            if index == -1:
                raise UserNotFoundError(user_id)
            self._remove_at(index)

        logger.info(f"[Users] Deleted {user_id}")

    # --- AUTHENTICATION ---

    def authenticate(self, email: str, password: str) -> User:
        """
        Return the account for a valid email/password pair.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password.
            AccountDeactivatedError: The account exists but is inactive.
        """
        user = self.find_by_email(email)
        if user is None:
            raise InvalidCredentialsError()
        if not user.is_active:
            raise AccountDeactivatedError()
        if not user.verify_password(password):
            raise InvalidCredentialsError()
        return user
