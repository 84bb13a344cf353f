"""Pydantic schemas for public widget submissions."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from feedloop.db.enums import DEFAULT_WIDGET_PRIORITY, ReportPriority, ReportType


class WidgetReport(BaseModel):
    """Text fields of a widget submission (files and diagnostics are parsed separately)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    project_key: str = Field(..., min_length=1, max_length=64)
    type: ReportType
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=10000)
    priority: ReportPriority = DEFAULT_WIDGET_PRIORITY
    reporter_name: str | None = Field(None, max_length=100)
    reporter_email: EmailStr | None = None
    url: str | None = Field(None, max_length=2000)
    user_agent: str | None = Field(None, max_length=1000)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return ReportType.normalize(value.strip().lower())
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def default_priority(cls, value: Any) -> Any:
        if value in (None, ""):
            return DEFAULT_WIDGET_PRIORITY
        return value

    @field_validator("reporter_name", "reporter_email", "url", "user_agent", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class WidgetAttachmentRead(BaseModel):
    id: UUID
    filename: str
    file_size: int
    mime_type: str


class WidgetSubmitResponse(BaseModel):
    success: bool
    report_id: UUID
    message: str
    attachments: list[WidgetAttachmentRead]
    attachment_errors: list[str]
