"""
auth/service.py -- Registration and the login / lockout state machine.

Pure business logic with no HTTP dependencies. Every expected outcome is
returned as a Result; only truly unexpected faults are caught here, logged,
and downgraded to RegistrationFailed / AuthenticationFailed so no internal
detail reaches the caller.

Per-account states:
  Active/Unlocked  -- failures count up; the max-th failure locks the account
                      and resets the counter; a success resets the counter.
  Active/Locked    -- every attempt is refused with AccountLocked and the
                      password is not checked. Ends by itself once
                      locked_until <= now; no write is needed to unlock.
  Inactive         -- checked after the lock and before the password; this
                      service never changes is_active.

Concurrency:
  Each operation is one unit of work. Store calls and bcrypt run on worker
  threads so the event loop is never blocked. No locks are taken: duplicate
  registrations are stopped by the UNIQUE(email) constraint, and lost
  login_attempts increments under concurrent failures are accepted.
  Cancelling the awaiting task raises asyncio.CancelledError to the caller;
  it is never reported as a credential failure.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import math
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError

from auth.errors import (
    AccountDeactivated,
    AccountLocked,
    AuthenticationFailed,
    DuplicateAccount,
    InvalidCredentials,
    RegistrationFailed,
)
from auth.models import Result, User, normalize_email
from auth.passwords import BcryptHasher
from auth.store import UserStore

logger = logging.getLogger("authgate.auth")

MAX_LOGIN_ATTEMPTS = 5
LOCKOUT_DURATION = timedelta(minutes=15)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _offload(fn: Callable[..., Any], *args: Any) -> Any:
    """Run a blocking call on the default executor.

    If the awaiting task is cancelled, the worker call is allowed to finish
    before CancelledError propagates, so the unit of work is never closed
    underneath a running statement.
    """
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(None, functools.partial(fn, *args))
    try:
        return await asyncio.shield(future)
    except asyncio.CancelledError:
        await asyncio.wait({future})
        raise


class AuthService:
    """Registers users and authenticates email/password logins.

    Args:
        store:              UserStore (or anything with unit_of_work()).
        hasher:             Password hasher with hash() / verify().
        max_login_attempts: Consecutive failures that trigger a lockout.
        lockout_duration:   How long a lockout lasts.
        clock:              Returns the current aware UTC datetime. Tests
                            inject a fake clock to move time forward.
    """

    def __init__(
        self,
        store: UserStore,
        hasher: BcryptHasher | None = None,
        max_login_attempts: int = MAX_LOGIN_ATTEMPTS,
        lockout_duration: timedelta = LOCKOUT_DURATION,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_login_attempts < 1:
            raise ValueError("max_login_attempts must be at least 1")
        self._store = store
        self._hasher = hasher or BcryptHasher()
        self.max_login_attempts = max_login_attempts
        self.lockout_duration = lockout_duration
        self._clock = clock
        # Verified against when the email is unknown so that path costs the
        # same bcrypt work as a wrong password.
        self._dummy_hash = self._hasher.hash("authgate_timing_dummy")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register(self, email: str, password: str) -> Result[User]:
        """Create a new account.

        Returns Result.failure(DuplicateAccount) if the normalized email is
        taken, including when a concurrent registration wins the INSERT race.
        """
        normalized = normalize_email(email)
        try:
            with self._store.unit_of_work() as uow:
                if await _offload(uow.find_by_normalized_email, normalized) is not None:
                    return Result.failure(DuplicateAccount())

                password_hash = await _offload(self._hasher.hash, password)
                now = self._clock()
                user = User(
                    email=normalized,
                    password_hash=password_hash,
                    is_active=True,
                    login_attempts=0,
                    locked_until=None,
                    created_at=now,
                    updated_at=now,
                )
                try:
                    await _offload(uow.insert, user)
                    await _offload(uow.commit)
                except IntegrityError:
                    logger.info("Concurrent registration lost the race for %s", normalized)
                    return Result.failure(DuplicateAccount())
            return Result.success(user)
        except Exception:
            logger.exception("Registration failed for %s", normalized)
            return Result.failure(RegistrationFailed())

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def authenticate(self, email: str, password: str) -> Result[User]:
        """Check an email/password pair and apply the lockout policy.

        Unknown email and wrong password both give InvalidCredentials. A
        locked account gives AccountLocked without the password being
        checked; an inactive one gives AccountDeactivated.
        """
        normalized = normalize_email(email)
        try:
            with self._store.unit_of_work() as uow:
                user = await _offload(uow.find_by_normalized_email, normalized)
                if user is None:
                    await _offload(self._hasher.verify, password, self._dummy_hash)
                    return Result.failure(InvalidCredentials())

                now = self._clock()
                if user.is_locked(now):
                    return Result.failure(AccountLocked(self.remaining_lockout_minutes(user, now)))

                if not user.is_active:
                    return Result.failure(AccountDeactivated())

                if not await _offload(self._hasher.verify, password, user.password_hash):
                    self._record_failure(user, self._clock())
                    await _offload(uow.update, user)
                    await _offload(uow.commit)
                    return Result.failure(InvalidCredentials())

                now = self._clock()
                user.login_attempts = 0
                user.locked_until = None
                user.last_login_at = now
                user.updated_at = now
                await _offload(uow.update, user)
                await _offload(uow.commit)
            return Result.success(user)
        except Exception:
            logger.exception("Authentication failed for %s", normalized)
            return Result.failure(AuthenticationFailed())

    def _record_failure(self, user: User, now: datetime) -> None:
        user.login_attempts += 1
        if user.login_attempts >= self.max_login_attempts:
            user.locked_until = now + self.lockout_duration
            user.login_attempts = 0
            logger.warning("Account %s locked until %s", user.id, user.locked_until.isoformat())
        user.updated_at = now

    @staticmethod
    def remaining_lockout_minutes(user: User, now: datetime) -> int:
        """Whole minutes until the lock expires, rounded up (never below 1)."""
        if user.locked_until is None:
            return 0
        seconds = (user.locked_until - now).total_seconds()
        return max(1, math.ceil(seconds / 60))
