"""Authentication-related Pydantic schemas."""

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class UserRegister(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    company: str | None = Field(None, max_length=100)

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        if not re.search(r"[A-Za-z]", value) or not re.search(r"\d", value):
            raise ValueError("Password must contain at least one letter and one number")
        return value


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class UserRead(BaseModel):
    """Session-safe view of a user (never includes the password hash)."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    first_name: str
    last_name: str
    company: str | None
    avatar_url: str | None
    email_verified: bool
    last_login_at: datetime | None


class ProcessedInvitation(BaseModel):
    project_id: UUID
    project_name: str
    role: str
    can_invite: bool


class RegisterResponse(BaseModel):
    message: str
    user: UserRead
    processed_invitations: list[ProcessedInvitation]


class LoginResponse(BaseModel):
    message: str
    user: UserRead
