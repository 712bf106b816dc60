"""
User model for the authentication service.

A User is a mutable record owned by the UserStore. Callers receive shared
references and may read them freely, but changes go through the store so
they are persisted.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError

from eventhub.core.config import USER_ROLES
from eventhub.core.exceptions import ValidationError
from eventhub.core.timeutil import require_dt, to_iso, utc_now
from eventhub.core.validation import is_text

ph = PasswordHasher()


def normalize_email(email: Optional[str]) -> str:
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def check_text_fields(**fields: Any) -> None:
    """Raise ValidationError for any given field that is not None and not usable text."""
    for name, value in fields.items():
        if value is not None and not is_text(value):
            raise ValidationError(f"{name} must be a string")


@dataclass
class User:
    id: str
    email: str
    password_hash: str
    first_name: str
    last_name: str
    role: str = "attendee"
    is_active: bool = True
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def new(
        cls,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: str = "attendee",
    ) -> "User":
        """
        Build a fresh account with a generated id and a hashed password.

        Raises:
            ValidationError: Missing email or password, a non-text field, or
                unknown role.
        """
        check_text_fields(email=email, password=password, first_name=first_name, last_name=last_name)
        email = normalize_email(email)
        if not email:
            raise ValidationError("Email is required")
        if not password:
            raise ValidationError("Password is required")
        role = role or "attendee"
        if role not in USER_ROLES:
            raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")

        now = utc_now()
        return cls(
            id=str(uuid.uuid4()),
            email=email,
            password_hash=ph.hash(password),
            first_name=(first_name or "").strip(),
            last_name=(last_name or "").strip(),
            role=role,
            created_at=now,
            updated_at=now,
        )

    # --- PASSWORDS ---

    def verify_password(self, candidate: str) -> bool:
        """
        Check a candidate password against the stored argon2 hash.

        Returns False on mismatch. Any other argon2 failure (for example an
        unreadable stored hash) propagates.
        """
        try:
            return ph.verify(self.password_hash, candidate or "")
        except VerifyMismatchError:
            return False

    def set_password(self, new_password: str) -> None:
        check_text_fields(password=new_password)
        if not new_password:
            raise ValidationError("Password is required")
        self.password_hash = ph.hash(new_password)
        self.updated_at = utc_now()

    # --- MUTATIONS ---

    def apply_profile_update(
        self,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> None:
        """
        Update only the provided fields. Role is fixed at creation.

        Every field is checked before any is assigned.
        """
        check_text_fields(first_name=first_name, last_name=last_name, email=email)
        if first_name is not None:
            self.first_name = first_name.strip()
        if last_name is not None:
            self.last_name = last_name.strip()
        if email is not None:
            self.email = normalize_email(email)
        self.updated_at = utc_now()

    def deactivate(self) -> None:
        self.is_active = False
        self.updated_at = utc_now()

    # --- VIEWS ---

    def to_dict(self) -> Dict[str, Any]:
        """Outward profile; never includes the password hash."""
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    def to_summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_iso(self.created_at),
        }

    def to_stats(self) -> Dict[str, Any]:
        return {
            "user_id": self.id,
            "role": self.role,
            "member_since": to_iso(self.created_at),
            "last_updated": to_iso(self.updated_at),
            "is_active": self.is_active,
        }

    # --- PERSISTENCE ---

    def to_record(self) -> Dict[str, Any]:
        record = self.to_dict()
        record["password_hash"] = self.password_hash
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "User":
        """Rehydrate a stored record into a full User."""
        return cls(
            id=str(record["id"]),
            email=normalize_email(record["email"]),
            password_hash=record["password_hash"],
            first_name=record.get("first_name") or "",
            last_name=record.get("last_name") or "",
            role=record.get("role") or "attendee",
            is_active=bool(record.get("is_active", True)),
            created_at=require_dt(record["created_at"], "created_at"),
            updated_at=require_dt(record["updated_at"], "updated_at"),
        )

    def restore(self, record: Dict[str, Any]) -> None:
        """Reset every field from a record produced by to_record()."""
        self.__dict__.update(vars(User.from_record(record)))
