"""Pydantic schemas for reports."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import (
    BaseModel, ConfigDict, EmailStr, Field, ValidationInfo, field_validator, model_validator
)

from feedloop.db.enums import ReportPriority, ReportStatus, ReportType
from feedloop.utils.datetime_parsing import parse_filter_datetime
from feedloop.utils.pagination import DEFAULT_LIMIT, DEFAULT_PAGE, MAX_LIMIT, MAX_PAGE

SortColumn = Literal["title", "type", "priority", "created_at", "reporter_name"]
PriorityFilter = Literal["low", "medium", "high", "critical", "none"]
IncludeCount = Literal["console_logs_count", "network_requests_count", "attachments_count"]

UPDATABLE_FIELDS = ("title", "description", "status", "priority", "type")


def _normalize_type(value: Any) -> Any:
    if isinstance(value, str):
        return ReportType.normalize(value.strip().lower())
    return value


# =============================================================================
# Embedded diagnostics
# =============================================================================

class ConsoleLogEntry(BaseModel):
    type: Literal["log", "warn", "error"]
    message: str
    timestamp: str
    stack: str | None = None


class NetworkRequestEntry(BaseModel):
    url: str
    method: str
    status: int
    duration: float
    timestamp: str
    size: int | None = None
    headers: dict[str, Any] | None = None


# =============================================================================
# Requests
# =============================================================================

class ReportUpdate(BaseModel):
    """
    Partial report update.

    Every field is optional but at least one recognised field must be
    present; explicit nulls are rejected.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, min_length=1, max_length=10000)
    status: ReportStatus | None = None
    priority: ReportPriority | None = None
    type: ReportType | None = None

    @field_validator(*UPDATABLE_FIELDS, mode="before")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value: Any) -> Any:
        return _normalize_type(value)

    @model_validator(mode="after")
    def require_any_field(self) -> "ReportUpdate":
        if not self.model_fields_set.intersection(UPDATABLE_FIELDS):
            raise ValueError("No fields to update")
        return self

    def changes(self) -> dict[str, Any]:
        data = self.model_dump(include=self.model_fields_set, mode="json")
        return {key: value for key, value in data.items() if key in UPDATABLE_FIELDS}


class ReportCreate(BaseModel):
    """Dashboard-created report."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=10000)
    type: ReportType
    priority: ReportPriority | None = ReportPriority.MEDIUM
    reporter_name: str | None = Field(None, max_length=100)
    reporter_email: EmailStr | None = None
    page_url: str | None = Field(None, max_length=2000)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value: Any) -> Any:
        return _normalize_type(value)


class ReportFilter(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    title: str | None = Field(None, max_length=200)
    type: ReportType | None = None
    priority: PriorityFilter | None = None
    reporter: str | None = Field(None, max_length=255)
    date_from: datetime | None = Field(None, alias="dateFrom")
    date_to: datetime | None = Field(None, alias="dateTo")

    @field_validator("title", "reporter", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value: Any) -> Any:
        if value == "":
            return None
        return _normalize_type(value)

    @field_validator("priority", mode="before")
    @classmethod
    def blank_priority(cls, value: Any) -> Any:
        return None if value == "" else value

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def parse_date(cls, value: Any, info: ValidationInfo) -> Any:
        if not isinstance(value, str):
            return value
        try:
            return parse_filter_datetime(value, end_of_day=info.field_name == "date_to").value
        except ValueError:
            raise ValueError("Invalid date; expected ISO 8601 date or datetime")

    @model_validator(mode="after")
    def check_range(self) -> "ReportFilter":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("dateFrom must not be after dateTo")
        return self


class ReportSort(BaseModel):
    column: SortColumn = "created_at"
    direction: Literal["asc", "desc"] = "desc"

    @field_validator("column", "direction", mode="before")
    @classmethod
    def blank_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value in (None, ""):
            return cls.model_fields[info.field_name].default
        return value


class ReportListQuery(BaseModel):
    """Filter, sort, pagination and optional counts for the report list."""
    filter: ReportFilter = Field(default_factory=ReportFilter)
    sort: ReportSort = Field(default_factory=ReportSort)
    page: int = Field(DEFAULT_PAGE, ge=1, le=MAX_PAGE)
    limit: int = Field(DEFAULT_LIMIT, ge=1)
    include: frozenset[IncludeCount] = frozenset()

    @field_validator("limit")
    @classmethod
    def clamp_limit(cls, value: int) -> int:
        return min(value, MAX_LIMIT)

    @field_validator("include", mode="before")
    @classmethod
    def split_include(cls, value: Any) -> Any:
        if isinstance(value, str):
            return frozenset(part.strip() for part in value.split(",") if part.strip())
        return value


# =============================================================================
# Responses
# =============================================================================

class AttachmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    filename: str
    file_size: int
    mime_type: str
    file_url: str
    created_at: datetime


class CreatorRead(BaseModel):
    email: str
    name: str


class ReportListItem(BaseModel):
    """Report row for the dashboard table. Status is not part of this view."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    title: str
    description: str
    type: str
    priority: str | None
    reporter_name: str | None
    reporter_email: str | None
    page_url: str | None
    created_at: datetime
    updated_at: datetime


class ReportDetail(BaseModel):
    """Full report with attachments and creator identity."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    title: str
    description: str
    type: str
    priority: str | None
    status: str
    reporter_name: str | None
    reporter_email: str | None
    page_url: str | None
    browser_info: dict[str, Any] | None
    console_logs: list[Any] | None
    network_requests: list[Any] | None
    created_by: UUID | None
    created_at: datetime
    updated_at: datetime
    fl_attachments: list[AttachmentRead] = []
    creator: CreatorRead | None = None


class PaginationRead(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class ReportListMetadata(BaseModel):
    total_by_type: dict[str, int]
    total_by_priority: dict[str, int]


class ReportListResponse(BaseModel):
    reports: list[dict[str, Any]]
    pagination: PaginationRead
    metadata: ReportListMetadata
