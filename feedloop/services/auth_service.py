"""Authentication service - registration and credential checks."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from feedloop.core.config import settings
from feedloop.core.errors import (
    AuthenticationError, ConflictError, NotFoundError, PermissionDeniedError
)
from feedloop.core.security import hash_password, verify_password
from feedloop.db.models import User
from feedloop.db.types import utcnow
from feedloop.schemas.auth import ProcessedInvitation, UserLogin, UserRegister
from feedloop.services import membership_service
from feedloop.utils.normalization import normalize_email, normalize_name

logger = logging.getLogger(__name__)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(
        select(User).where(User.email == normalize_email(email))
    ).scalar_one_or_none()


def create_user(
    db: Session,
    *,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    company: str | None = None,
    email_verified: bool = False,
) -> User:
    """Insert a user with a hashed password (flushes, caller commits)."""
    user = User(
        email=normalize_email(email),
        password_hash=hash_password(password),
        first_name=normalize_name(first_name) or first_name,
        last_name=normalize_name(last_name) or last_name,
        company=normalize_name(company),
        email_verified=email_verified,
    )
    db.add(user)
    db.flush()
    return user


def register(db: Session, data: UserRegister) -> tuple[User, list[ProcessedInvitation]]:
    """
    Create an account and accept any pending invitations for its email.

    Raises:
        ConflictError: email already registered
    """
    if get_user_by_email(db, data.email):
        raise ConflictError("User with this email already exists")
    try:
        user = create_user(
            db,
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            company=data.company,
        )
        processed = membership_service.accept_pending_invitations(db, user)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("User with this email already exists")
    db.refresh(user)
    logger.info("User registered user_id=%s invitations=%s", user.id, len(processed))
    return user, processed


def authenticate(db: Session, data: UserLogin) -> User:
    """
    Check credentials and record the login time.

    Raises:
        NotFoundError: no account for the email
        PermissionDeniedError: email not verified (when required)
        AuthenticationError: wrong password
    """
    user = get_user_by_email(db, data.email)
    if not user:
        raise NotFoundError("User not found")
    if settings.REQUIRE_EMAIL_VERIFICATION and not user.email_verified:
        raise PermissionDeniedError("Please verify your email before signing in")
    if not verify_password(data.password, user.password_hash):
        logger.info("Login rejected user_id=%s", user.id)
        raise AuthenticationError("Invalid credentials")
    user.last_login_at = utcnow()
    db.commit()
    db.refresh(user)
    return user
