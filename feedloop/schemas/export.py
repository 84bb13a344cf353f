"""Pydantic schemas for report exports."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import (
    BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
)

from feedloop.core.validation import is_valid_uuid
from feedloop.db.enums import ExportFormat, ExportTemplate, ReportType
from feedloop.utils.datetime_parsing import parse_filter_datetime


class ExportDateRange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date_from: datetime | None = Field(None, alias="from")
    date_to: datetime | None = Field(None, alias="to")

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def parse_date(cls, value: Any, info: ValidationInfo) -> Any:
        if value in (None, ""):
            return None
        if not isinstance(value, str):
            return value
        try:
            return parse_filter_datetime(value, end_of_day=info.field_name == "date_to").value
        except ValueError:
            raise ValueError("Invalid date; expected ISO 8601 date or datetime")

    @model_validator(mode="after")
    def check_range(self) -> "ExportDateRange":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("from must not be after to")
        return self


class ExportFilters(BaseModel):
    """Filter-based selection, re-evaluated at export time."""
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    title: str | None = Field(None, max_length=200)
    type: ReportType | Literal["all"] | None = None
    priority: Literal["low", "medium", "high", "critical", "none", "all"] | None = None
    reporter: str | None = Field(None, max_length=255)
    date_range: ExportDateRange | None = Field(None, alias="dateRange")

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value: Any) -> Any:
        if value == "":
            return None
        return ReportType.normalize(value) if isinstance(value, str) else value


class IncludeFields(BaseModel):
    """Which fields appear in the export, in this fixed order."""
    title: bool = True
    description: bool = True
    type: bool = True
    priority: bool = True
    reporter: bool = True
    url: bool = True
    created_at: bool = True
    console_logs: bool = False
    network_requests: bool = False

    def selected(self) -> list[str]:
        return [name for name in type(self).model_fields if getattr(self, name)]


class ExportRequest(BaseModel):
    format: ExportFormat
    report_ids: list[UUID] | None = Field(None, max_length=1000)
    filters: ExportFilters | None = None
    include_fields: IncludeFields = Field(default_factory=IncludeFields)
    template: ExportTemplate = ExportTemplate.DEFAULT

    @field_validator("report_ids", mode="before")
    @classmethod
    def check_report_ids(cls, value: Any) -> Any:
        if isinstance(value, list):
            for item in value:
                if isinstance(item, str) and not is_valid_uuid(item):
                    raise ValueError("Invalid report ID format")
        return value
