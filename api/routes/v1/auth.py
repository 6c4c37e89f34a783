"""
api/routes/v1/auth.py -- Registration, login and session REST endpoints.

Routes:
  POST /api/v1/auth/register  -- create an account; 201 with the public user view
  POST /api/v1/auth/login     -- password login; sets the session cookie
  POST /api/v1/auth/logout    -- revokes the presented session, clears the cookie
  GET  /api/v1/auth/me        -- current user info (requires auth)

Status mapping for AuthService failures:
  duplicate_account      409     invalid_credentials    401
  account_locked         423     account_deactivated    403
  registration_failed    500     authentication_failed  500

Security:
  POST /login and /register are rate-limited per IP (LOGIN_RATE_LIMIT), on top
  of the per-account lockout enforced by AuthService.
  Cache-Control: no-store on every login response.
  Unknown email and wrong password share the invalid_credentials answer.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import ErrorDetail, ErrorResponse, LoginRequest, LoginResponse, RegisterRequest, UserResponse
from auth.dependencies import get_current_user, get_session_token
from auth.errors import (
    AccountDeactivated,
    AccountLocked,
    AuthenticationFailed,
    AuthError,
    DuplicateAccount,
    InvalidCredentials,
    RegistrationFailed,
)
from auth.models import User
from auth.service import AuthService
from auth.sessions import SessionIssuer, clear_session_cookie, set_session_cookie
from core.config import get_settings

logger = logging.getLogger("authgate.api")

# Auth policy:
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public
# - POST /api/v1/auth/logout:   public -- revoking a missing session is a no-op
# - GET  /api/v1/auth/me:       requires auth (get_current_user)
router = APIRouter()

_STATUS_BY_ERROR: dict[type[AuthError], int] = {
    DuplicateAccount: 409,
    RegistrationFailed: 500,
    InvalidCredentials: 401,
    AccountLocked: 423,
    AccountDeactivated: 403,
    AuthenticationFailed: 500,
}


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=UserResponse, status_code=201)
@limiter.limit(login_rate_limit)
async def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a new account. The caller logs in separately afterwards."""
    service: AuthService = request.app.state.auth_service
    logger.info("Registration attempt for %s", body.email)

    result = await service.register(body.email, body.password)
    if not result.is_success:
        logger.warning("Registration failed for %s: %s", body.email, result.error.code)
        return _error_response(result.error)

    user = result.value
    logger.info("Registration successful for %s (user_id=%s)", user.email, user.id)
    return JSONResponse(status_code=201, content=UserResponse.from_user(user).model_dump(mode="json"))


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(login_rate_limit)
async def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the session cookie.

    Only a successful result reaches the session issuer.
    """
    service: AuthService = request.app.state.auth_service
    sessions: SessionIssuer = request.app.state.sessions

    result = await service.authenticate(body.email, body.password)
    if not result.is_success:
        error = result.error
        if isinstance(error, AccountLocked):
            logger.warning(
                "Login refused for %s: account locked (%d minutes remaining)",
                body.email,
                error.remaining_minutes,
            )
        else:
            logger.warning("Login failed for %s: %s", body.email, error.code)
        resp = _error_response(error)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    user = result.value
    token = sessions.issue_session(user.id, user.email)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=sessions.expire_seconds,
            user=UserResponse.from_user(user),
        ).model_dump(mode="json"),
    )
    set_session_cookie(resp, token, max_age=sessions.expire_seconds, secure=get_settings().secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    logger.info("Login successful for %s (user_id=%s)", user.email, user.id)
    return resp


@router.post("/auth/logout")
async def logout(request: Request) -> JSONResponse:
    """Revoke the presented session (if any) and clear the cookie."""
    sessions: SessionIssuer = request.app.state.sessions
    token = get_session_token(request)
    if token:
        sessions.revoke_session(token)
    resp = JSONResponse(content={"message": "Logged out."})
    clear_session_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the currently authenticated user."""
    return UserResponse.from_user(current_user)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _error_response(error: AuthError) -> JSONResponse:
    status_code = _STATUS_BY_ERROR.get(type(error), 400)
    remaining = error.remaining_minutes if isinstance(error, AccountLocked) else None
    resp = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=error.code, message=error.message, remaining_minutes=remaining)
        ).model_dump(exclude_none=True),
    )
    if remaining is not None:
        resp.headers["Retry-After"] = str(remaining * 60)
    return resp
