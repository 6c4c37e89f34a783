"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two ways to present a session token are checked in priority order:
  1. JWT cookie ("access_token") -- set by the login endpoint.
  2. Authorization: Bearer <token> header -- API clients.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.

A valid token is not enough: the user must still exist and be active, so
deactivating an account ends its sessions on the next request.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import User
from auth.sessions import COOKIE_NAME


def get_session_token(request: Request) -> str | None:
    """Return the raw session token from the cookie or Bearer header."""
    token: str | None = request.cookies.get(COOKIE_NAME)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def try_get_current_user(request: Request) -> User | None:
    """Resolve the request's session to an active User, or None."""
    token = get_session_token(request)
    if not token:
        return None
    payload = request.app.state.sessions.resolve_session(token)
    if payload is None:
        return None
    user = request.app.state.user_store.get_by_id(payload["user_id"])
    if user is None or not user.is_active:
        return None
    return user


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user
