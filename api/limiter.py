"""
api/limiter.py -- Shared slowapi rate limiter for the credential endpoints.

api/main.py mounts it as middleware; api/routes/v1/auth.py applies the
per-route limit to login and register. One module-level instance means one
counter store: separate instances would each count on their own and the
limit would never trigger.

Per-IP throttling complements the per-account lockout: the lockout stops
guessing against one account, the rate limit stops spraying across many.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_rate_limit() -> str:
    """Limit string for credential routes, e.g. "10/minute" (LOGIN_RATE_LIMIT)."""
    return get_settings().login_rate_limit
