"""
auth/errors.py -- Failure taxonomy for registration and authentication.

AuthService returns these inside Result.failure(...); it does not raise them.
Each class carries a stable machine-readable code and a caller-safe message,
so the API layer can map them to HTTP responses without string matching.

InvalidCredentials is deliberately used for both "unknown email" and
"wrong password" so callers cannot enumerate accounts.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all expected auth failures."""

    code = "auth_error"
    default_message = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class DuplicateAccount(AuthError):
    code = "duplicate_account"
    default_message = "An account with this email address already exists."


class RegistrationFailed(AuthError):
    """Unexpected fault during registration. Details go to the log only."""

    code = "registration_failed"
    default_message = "Registration failed. Please try again."


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    default_message = "Invalid email or password."


class AccountLocked(AuthError):
    """Temporary lockout after too many failed attempts. Clears by itself."""

    code = "account_locked"

    def __init__(self, remaining_minutes: int) -> None:
        self.remaining_minutes = remaining_minutes
        super().__init__(f"Account is locked. Please try again in {remaining_minutes} minutes.")


class AccountDeactivated(AuthError):
    code = "account_deactivated"
    default_message = "Account is deactivated. Please contact support."


class AuthenticationFailed(AuthError):
    """Unexpected fault during authentication. Details go to the log only."""

    code = "authentication_failed"
    default_message = "Authentication failed. Please try again."
