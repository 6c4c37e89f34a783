"""
auth/sessions.py -- Session handles for authenticated principals.

The service decides *whether* someone may log in; this module turns that
decision into a client session and takes it away again on logout.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the principal id, the display identity (email), a random jti and an
       expiry. resolve_session() returns None on any failure -- the route
       layer turns that into a 401.

  Revocation: JWTs are stateless, so logout records the token's jti in an
       in-memory deny list until the token would have expired anyway. A
       restart forgets the list; tokens issued before it stay valid until exp.

  Cookie: httpOnly + SameSite=strict; secure when SECURE_COOKIES=true.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
import threading
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

logger = logging.getLogger("authgate.auth")

_ALGORITHM = "HS256"

COOKIE_NAME = "access_token"


class SessionIssuer:
    """Issue, resolve and revoke signed session tokens.

    Usage:
        issuer = SessionIssuer(secret_key, expire_seconds=3600)
        token = issuer.issue_session(user.id, user.email)
        claims = issuer.resolve_session(token)   # dict or None
        issuer.revoke_session(token)
    """

    def __init__(self, secret_key: str, expire_seconds: int = 8 * 3600) -> None:
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds
        self._revoked: dict[str, float] = {}  # jti -> exp (unix seconds)
        self._lock = threading.Lock()

    def issue_session(self, principal_id: str, display_identity: str) -> str:
        """Encode a signed JWT for the given principal."""
        expire = datetime.now(timezone.utc) + timedelta(seconds=self.expire_seconds)
        payload = {
            "sub": display_identity,
            "user_id": principal_id,
            "jti": secrets.token_hex(16),
            "exp": expire,
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def resolve_session(self, token: str) -> dict | None:
        """Decode and verify a token. Returns the claims, or None if invalid,
        expired, malformed or revoked."""
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError:
            return None
        if "user_id" not in payload or "jti" not in payload:
            return None
        with self._lock:
            if payload["jti"] in self._revoked:
                return None
        return payload

    def revoke_session(self, token: str) -> bool:
        """Revoke a token. Returns False if it was not a valid session."""
        payload = self.resolve_session(token)
        if payload is None:
            return False
        with self._lock:
            self._purge_expired()
            self._revoked[payload["jti"]] = float(payload["exp"])
        logger.info("Session revoked for user %s", payload["user_id"])
        return True

    def _purge_expired(self) -> None:
        now = datetime.now(timezone.utc).timestamp()
        for jti in [j for j, exp in self._revoked.items() if exp <= now]:
            del self._revoked[jti]


def set_session_cookie(response, token: str, max_age: int, secure: bool) -> None:
    """Write the session token as an httpOnly cookie on the response.

    max_age matches the JWT expiry so both expire together.
    """
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="strict",
        secure=secure,
        max_age=max_age,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(COOKIE_NAME)
