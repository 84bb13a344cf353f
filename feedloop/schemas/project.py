"""Pydantic schemas for projects, team members and deletion."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import (
    BaseModel, ConfigDict, EmailStr, Field, StrictBool, field_validator, model_validator
)


class ProjectCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)


class ProjectUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(None, min_length=1, max_length=100)

    @model_validator(mode="after")
    def require_any_field(self) -> "ProjectUpdate":
        if self.name is None:
            raise ValueError("No fields to update")
        return self


class ProjectRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    owner_id: UUID
    integration_key: str
    created_at: datetime
    updated_at: datetime


class ProjectListItem(ProjectRead):
    role: str
    report_count: int = 0


class MemberRead(BaseModel):
    user_id: UUID | None = None
    invitation_id: UUID | None = None
    email: str
    name: str | None = None
    role: str
    can_invite: bool
    status: Literal["active", "pending"]


class ProjectDetail(ProjectRead):
    members: list[MemberRead] = []


# =============================================================================
# Settings
# =============================================================================

class ProjectSettingsQuery(BaseModel):
    include_statistics: bool = True
    include_permissions: bool = True


class ProjectStatistics(BaseModel):
    member_count: int
    pending_invitation_count: int
    report_count: int
    attachment_count: int
    total_storage_usage: int  # bytes


class ProjectPermissions(BaseModel):
    can_delete: bool
    can_modify: bool
    can_invite: bool


class ProjectSettings(BaseModel):
    """What the owner sees before renaming or deleting a project."""
    project: ProjectRead
    statistics: ProjectStatistics | None = None
    permissions: ProjectPermissions | None = None


# =============================================================================
# Invitations
# =============================================================================

class InvitationCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    role: Literal["member", "admin"] = "member"
    can_invite: bool = False

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class MemberRemove(BaseModel):
    user_id: UUID | None = None
    invitation_id: UUID | None = None
    is_pending: bool = False

    @model_validator(mode="after")
    def require_target(self) -> "MemberRemove":
        if self.is_pending and not self.invitation_id:
            raise ValueError("invitation_id is required for pending invitations")
        if not self.is_pending and not self.user_id:
            raise ValueError("user_id is required")
        return self


class InvitationResult(BaseModel):
    message: str
    member: MemberRead


# =============================================================================
# Deletion
# =============================================================================

class ProjectDeletionRequest(BaseModel):
    """Confirmation the owner must send to delete a project."""
    confirmation_text: str = Field(..., min_length=1, max_length=100)
    understood_consequences: StrictBool
    deletion_reason: str | None = Field(None, max_length=500)

    @field_validator("understood_consequences")
    @classmethod
    def must_understand(cls, value: bool) -> bool:
        if value is not True:
            raise ValueError("You must acknowledge the consequences of deletion")
        return value


def validate_deletion_confirmation(request: ProjectDeletionRequest, project_name: str) -> bool:
    """Case-sensitive match of the typed name against the project name, both trimmed."""
    return request.confirmation_text.strip() == project_name.strip()


class CleanupSummary(BaseModel):
    database_records_deleted: int
    storage_files_deleted: int
    storage_cleanup_failures: list[str]


class DeletionErrorDetails(BaseModel):
    code: str
    message: str
    recoverable: bool


class ProjectDeletionResponse(BaseModel):
    success: bool
    status: str
    message: str
    project_id: UUID
    initiated_by: UUID
    initiated_at: datetime
    completed_at: datetime | None
    cleanup_summary: CleanupSummary
    error_details: DeletionErrorDetails | None = None
