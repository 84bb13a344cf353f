"""Enum definitions for application constants."""

from enum import Enum


class ReportType(str, Enum):
    """Kinds of report a project can receive."""

    BUG = "bug"
    INITIATIVE = "initiative"  # Feature requests
    FEEDBACK = "feedback"

    @classmethod
    def normalize(cls, value: str) -> str:
        """Map accepted aliases onto stored values."""
        return cls.INITIATIVE.value if value == "feature" else value


class ReportPriority(str, Enum):
    """Report priority, ordered from least to most severe."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ReportStatus(str, Enum):
    """Triage status of a report."""

    NEW = "new"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class MemberRole(str, Enum):
    """Role of a user within a project."""

    OWNER = "owner"
    MEMBER = "member"
    ADMIN = "admin"


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"
    XLSX = "xlsx"


class ExportTemplate(str, Enum):
    """Column naming conventions for the target issue tracker."""

    DEFAULT = "default"
    JIRA = "jira"
    AZURE_DEVOPS = "azure_devops"


class DeletionStatus(str, Enum):
    """Outcome of the project deletion workflow."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


# Severity rank used for priority sorting (unset sorts last)
PRIORITY_RANK = {
    ReportPriority.LOW.value: 1,
    ReportPriority.MEDIUM.value: 2,
    ReportPriority.HIGH.value: 3,
    ReportPriority.CRITICAL.value: 4,
}

DEFAULT_REPORT_STATUS = ReportStatus.NEW
DEFAULT_WIDGET_PRIORITY = ReportPriority.MEDIUM
