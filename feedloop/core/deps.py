"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from feedloop.core.errors import AuthenticationError, ValidationError
from feedloop.core.project_access import get_project_for_user
from feedloop.core.security import decode_session_token
from feedloop.core.validation import parse_uuid
from feedloop.db.models import Project, User
from feedloop.db.session import SessionLocal


# Cookie and header names
COOKIE_NAME = "feedloop_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    request: Request,
    db: Session = Depends(get_db)
) -> User:
    """
    Get authenticated user from session cookie.

    Validates:
    - Session cookie exists
    - JWT is valid and not expired
    - User exists
    - Token version matches (for revocation support)

    Raises:
        AuthenticationError: Authentication failed (401)
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise AuthenticationError()

    try:
        payload = decode_session_token(token)
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid session")

    try:
        user_id = parse_uuid(str(payload.get("sub", "")), "user")
    except ValidationError:
        raise AuthenticationError("Invalid session")

    user = db.get(User, user_id)
    if not user:
        raise AuthenticationError("User not found")

    # Token version check (revocation support)
    if user.token_version != payload.get("token_version"):
        raise AuthenticationError("Session revoked")

    return user


def get_project_id(
    project_id: str,
    user: User = Depends(get_current_user),
) -> UUID:
    """Authenticated, RFC-4122 shaped ``{project_id}`` path parameter."""
    return parse_uuid(project_id, "project")


def get_report_id(
    report_id: str,
    project_uuid: UUID = Depends(get_project_id),
) -> UUID:
    """``{report_id}`` path parameter, checked after the project id and before access."""
    return parse_uuid(report_id, "report")


def get_accessible_project(
    project_uuid: UUID = Depends(get_project_id),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Project:
    """
    Resolve the ``{project_id}`` path parameter for the current user.

    Order matters: authentication first, then UUID shape (400) before any
    lookup, then access (404 when missing or not a member).
    """
    return get_project_for_user(db, project_uuid, user.id)


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing dashboard endpoints (POST, PUT, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )
