"""Authentication router - registration, password login and session management."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request, Response
from sqlalchemy.orm import Session

from feedloop.core.config import settings
from feedloop.core.deps import COOKIE_NAME, get_current_user, get_db, require_csrf_header
from feedloop.core.errors import RateLimitedError
from feedloop.core.rate_limit import FixedWindowRateLimiter, client_key, get_auth_rate_limiter
from feedloop.core.security import create_session_token
from feedloop.core.validation import unwrap, validate
from feedloop.db.models import User
from feedloop.schemas.auth import (
    LoginResponse, RegisterResponse, UserLogin, UserRead, UserRegister
)
from feedloop.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _throttle(request: Request, limiter: FixedWindowRateLimiter, scope: str) -> None:
    """Count one attempt; raise 429 with rate-limit headers when over the window."""
    decision = limiter.check(client_key(request, scope))
    if not decision.allowed:
        raise RateLimitedError(
            "Too many attempts. Please try again later.",
            retry_after=decision.retry_after,
            headers=decision.headers(),
        )


# =============================================================================
# Registration / Login
# =============================================================================

@router.post("/register", status_code=201, response_model=RegisterResponse)
def register(
    request: Request,
    payload: Any = Body(None),
    limiter: FixedWindowRateLimiter = Depends(get_auth_rate_limiter),
    db: Session = Depends(get_db),
) -> RegisterResponse:
    """
    Create an account.

    Pending invitations for the email are accepted into memberships and
    listed in the response. Attempts are throttled per client address.
    """
    _throttle(request, limiter, "register")
    data = unwrap(validate(UserRegister, payload))
    user, processed = auth_service.register(db, data)
    message = "User registered successfully"
    if processed:
        message += f" and added to {len(processed)} project(s)"
    return RegisterResponse(
        message=message,
        user=UserRead.model_validate(user),
        processed_invitations=processed,
    )


@router.post("/login", response_model=LoginResponse)
def login(
    request: Request,
    response: Response,
    payload: Any = Body(None),
    limiter: FixedWindowRateLimiter = Depends(get_auth_rate_limiter),
    db: Session = Depends(get_db),
) -> LoginResponse:
    """Check credentials and set the session cookie."""
    _throttle(request, limiter, "login")
    data = unwrap(validate(UserLogin, payload))
    user = auth_service.authenticate(db, data)

    response.set_cookie(
        key=COOKIE_NAME,
        value=create_session_token(user.id, user.token_version),
        max_age=settings.JWT_EXPIRES_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )
    logger.info("User logged in user_id=%s", user.id)
    return LoginResponse(message="Login successful", user=UserRead.model_validate(user))


# =============================================================================
# Session Endpoints
# =============================================================================

@router.get("/me", response_model=UserRead)
def get_me(user: User = Depends(get_current_user)) -> UserRead:
    """Current user profile, used by the dashboard to bootstrap auth state."""
    return UserRead.model_validate(user)


@router.post("/logout", dependencies=[Depends(require_csrf_header)])
def logout(response: Response):
    """
    Clear the session cookie.

    Requires X-Requested-With header for CSRF protection.
    """
    response.delete_cookie(COOKIE_NAME, path="/")
    return {"status": "logged_out"}
