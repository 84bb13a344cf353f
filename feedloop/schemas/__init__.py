"""Pydantic schemas for API request/response models."""

from feedloop.schemas.auth import LoginResponse, RegisterResponse, UserLogin, UserRead, UserRegister
from feedloop.schemas.export import ExportFilters, ExportRequest, IncludeFields
from feedloop.schemas.project import (
    InvitationCreate,
    MemberRead,
    MemberRemove,
    ProjectCreate,
    ProjectDeletionRequest,
    ProjectDeletionResponse,
    ProjectDetail,
    ProjectListItem,
    ProjectRead,
    ProjectUpdate,
)
from feedloop.schemas.report import (
    ReportCreate,
    ReportDetail,
    ReportFilter,
    ReportListItem,
    ReportListQuery,
    ReportUpdate,
)
from feedloop.schemas.widget import WidgetReport, WidgetSubmitResponse

__all__ = [
    # Auth
    "UserRegister",
    "UserLogin",
    "UserRead",
    "RegisterResponse",
    "LoginResponse",
    # Export
    "ExportRequest",
    "ExportFilters",
    "IncludeFields",
    # Project
    "ProjectCreate",
    "ProjectUpdate",
    "ProjectRead",
    "ProjectListItem",
    "ProjectDetail",
    "MemberRead",
    "InvitationCreate",
    "MemberRemove",
    "ProjectDeletionRequest",
    "ProjectDeletionResponse",
    # Report
    "ReportCreate",
    "ReportUpdate",
    "ReportFilter",
    "ReportListQuery",
    "ReportListItem",
    "ReportDetail",
    # Widget
    "WidgetReport",
    "WidgetSubmitResponse",
]
