"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, no persistence logic). Stores and
the service do the work; these classes own the domain shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from auth.errors import AuthError

T = TypeVar("T")


def normalize_email(email: str) -> str:
    """Return the account key for an email address: stripped and lower-cased."""
    return email.strip().lower()


@dataclass
class User:
    """A registered identity.

    email is always stored normalized (see normalize_email) and is the unique
    natural key. id is assigned by the store on insert and never changes.

    locked_until is the whole lockout state: while it lies in the future the
    account is locked, and once it has passed the account is unlocked again
    without any write. login_attempts counts consecutive failures since the
    last success or the last lockout.
    """

    email: str
    password_hash: str
    id: str | None = None
    is_active: bool = True
    login_attempts: int = 0
    locked_until: datetime | None = None
    last_login_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    updated_by: str | None = None  # audit tag for admin changes

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > now


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of an AuthService operation.

    Exactly one of value / error is set. Expected failures (wrong password,
    lockout, duplicate email) travel here instead of being raised.
    """

    value: T | None = None
    error: AuthError | None = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: AuthError) -> Result[T]:
        return cls(error=error)
