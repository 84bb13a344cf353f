"""Report export - selection, field projection, and document rendering."""

from __future__ import annotations

import csv
import io
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font
from sqlalchemy import select
from sqlalchemy.orm import Session

from feedloop.core.errors import FeedLoopError, NotFoundError
from feedloop.core.structured_logging import build_log_context
from feedloop.db.enums import ExportFormat, ExportTemplate
from feedloop.db.models import Report
from feedloop.schemas.export import ExportFilters, ExportRequest
from feedloop.schemas.report import ReportFilter
from feedloop.services.report_service import build_filter_conditions

logger = logging.getLogger(__name__)


CSV_DANGEROUS_PREFIXES = ("=", "+", "-", "@", "\t", "\r")

# Fixed field order; templates only rename columns
FIELD_ORDER = (
    "title",
    "description",
    "type",
    "priority",
    "reporter",
    "url",
    "created_at",
    "console_logs",
    "network_requests",
)

TEMPLATE_COLUMNS: dict[ExportTemplate, dict[str, str]] = {
    ExportTemplate.DEFAULT: {
        "title": "Title",
        "description": "Description",
        "type": "Type",
        "priority": "Priority",
        "reporter": "Reporter",
        "url": "URL",
        "created_at": "Created At",
        "console_logs": "Console Logs",
        "network_requests": "Network Requests",
    },
    ExportTemplate.JIRA: {
        "title": "Summary",
        "description": "Description",
        "type": "Issue Type",
        "priority": "Priority",
        "reporter": "Reporter",
        "url": "URL",
        "created_at": "Created",
        "console_logs": "Console Logs",
        "network_requests": "Network Requests",
    },
    ExportTemplate.AZURE_DEVOPS: {
        "title": "Title",
        "description": "Description",
        "type": "Work Item Type",
        "priority": "Priority",
        "reporter": "Assigned To",
        "url": "URL",
        "created_at": "Created Date",
        "console_logs": "Console Logs",
        "network_requests": "Network Requests",
    },
}

MEDIA_TYPES = {
    ExportFormat.CSV: "text/csv; charset=utf-8",
    ExportFormat.JSON: "application/json",
    ExportFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

NO_REPORTS_MESSAGE = "No reports found matching the criteria"


class ExportStatus(str, Enum):
    IDLE = "idle"
    EXPORTING = "exporting"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ExportArtifact:
    """Rendered export ready to download."""
    filename: str
    media_type: str
    content: bytes
    row_count: int


# =============================================================================
# Selection
# =============================================================================

def _filters_to_report_filter(filters: ExportFilters) -> ReportFilter:
    date_range = filters.date_range
    return ReportFilter(
        title=filters.title or None,
        type=None if filters.type in (None, "all") else filters.type,
        priority=None if filters.priority in (None, "all") else filters.priority,
        reporter=filters.reporter or None,
        date_from=date_range.date_from if date_range else None,
        date_to=date_range.date_to if date_range else None,
    )


def resolve_selection(db: Session, project_id: uuid.UUID, request: ExportRequest) -> list[Report]:
    """
    Resolve the export selection to concrete rows, newest first.

    Explicit report_ids win over filters. Filters are evaluated now, never
    taken from a client-side id list. Ids outside the project are ignored.
    """
    stmt = select(Report).order_by(Report.created_at.desc(), Report.id.asc())
    if request.report_ids:
        stmt = stmt.where(
            Report.project_id == project_id,
            Report.id.in_(request.report_ids),
        )
    elif request.filters:
        stmt = stmt.where(
            *build_filter_conditions(project_id, _filters_to_report_filter(request.filters))
        )
    else:
        stmt = stmt.where(Report.project_id == project_id)
    return list(db.execute(stmt).scalars().all())


# =============================================================================
# Projection
# =============================================================================

def _compact_json(value: Any) -> str:
    return json.dumps(value if value is not None else [], separators=(",", ":"), sort_keys=True)


def field_value(report: Report, field: str) -> str:
    if field == "title":
        return report.title
    if field == "description":
        return report.description
    if field == "type":
        return report.type
    if field == "priority":
        return report.priority or "none"
    if field == "reporter":
        return report.reporter_name or report.reporter_email or "anonymous"
    if field == "url":
        return report.page_url or ""
    if field == "created_at":
        return report.created_at.isoformat()
    if field == "console_logs":
        return _compact_json(report.console_logs)
    if field == "network_requests":
        return _compact_json(report.network_requests)
    raise ValueError(f"Unknown export field: {field}")


def build_columns(fields: Sequence[str], template: ExportTemplate) -> list[str]:
    names = TEMPLATE_COLUMNS[template]
    return [names[f] for f in FIELD_ORDER if f in fields]


def project_rows(reports: Iterable[Report], fields: Sequence[str]) -> list[list[str]]:
    ordered = [f for f in FIELD_ORDER if f in fields]
    return [[field_value(report, f) for f in ordered] for report in reports]


# =============================================================================
# Rendering
# =============================================================================

def _csv_safe(value: str) -> str:
    if value and value.startswith(CSV_DANGEROUS_PREFIXES):
        return f"'{value}"
    return value


def _write_csv(headers: Sequence[str], rows: Iterable[Sequence[str]]) -> bytes:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_csv_safe(value) for value in row])
    return output.getvalue().encode("utf-8")


def _write_json(headers: Sequence[str], rows: Iterable[Sequence[str]]) -> bytes:
    records = [dict(zip(headers, row)) for row in rows]
    return json.dumps(records, indent=2, ensure_ascii=False).encode("utf-8")


def _write_xlsx(headers: Sequence[str], rows: Iterable[Sequence[str]], generated_at: datetime) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Reports"
    sheet.append(list(headers))
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for row in rows:
        sheet.append([_csv_safe(value) for value in row])
    naive = generated_at.astimezone(timezone.utc).replace(tzinfo=None)
    workbook.properties.created = naive
    workbook.properties.modified = naive
    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


def render(
    export_format: ExportFormat,
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    generated_at: datetime,
) -> bytes:
    if export_format == ExportFormat.CSV:
        return _write_csv(headers, rows)
    if export_format == ExportFormat.JSON:
        return _write_json(headers, rows)
    return _write_xlsx(headers, rows, generated_at)


def build_filename(template: ExportTemplate, export_format: ExportFormat, generated_at: datetime) -> str:
    suffix = "" if template == ExportTemplate.DEFAULT else f"-{template.value}"
    return f"feedloop-reports{suffix}-{generated_at.strftime('%Y-%m-%d')}.{export_format.value}"


# =============================================================================
# Job
# =============================================================================

class ExportJob:
    """
    One export run with observable status and progress.

    status moves idle -> exporting -> success | error and progress runs
    0..100. A failed run keeps only the error message; no artifact is
    retrievable after an error.
    """

    def __init__(
        self,
        request: ExportRequest,
        *,
        on_progress: Callable[[ExportStatus, int], None] | None = None,
    ) -> None:
        self.request = request
        self.status = ExportStatus.IDLE
        self.progress = 0
        self.error: str | None = None
        self._artifact: ExportArtifact | None = None
        self._on_progress = on_progress

    @property
    def artifact(self) -> ExportArtifact | None:
        return self._artifact if self.status == ExportStatus.SUCCESS else None

    def _advance(self, status: ExportStatus, progress: int) -> None:
        self.status = status
        self.progress = progress
        if self._on_progress:
            self._on_progress(status, progress)

    def run(self, db: Session, project_id: uuid.UUID, *, now: datetime | None = None) -> ExportArtifact:
        generated_at = now or datetime.now(timezone.utc)
        self.error = None
        self._artifact = None
        self._advance(ExportStatus.EXPORTING, 0)
        try:
            reports = resolve_selection(db, project_id, self.request)
            if not reports:
                raise NotFoundError(NO_REPORTS_MESSAGE)
            self._advance(ExportStatus.EXPORTING, 30)

            fields = self.request.include_fields.selected()
            headers = build_columns(fields, self.request.template)
            rows = project_rows(reports, fields)
            self._advance(ExportStatus.EXPORTING, 60)

            content = render(self.request.format, headers, rows, generated_at)
            self._advance(ExportStatus.EXPORTING, 90)

            artifact = ExportArtifact(
                filename=build_filename(self.request.template, self.request.format, generated_at),
                media_type=MEDIA_TYPES[self.request.format],
                content=content,
                row_count=len(rows),
            )
        except Exception as exc:
            self._artifact = None
            self.error = exc.message if isinstance(exc, FeedLoopError) else "Export failed"
            self._advance(ExportStatus.ERROR, self.progress)
            logger.warning(
                "Report export failed project_id=%s error=%s", project_id, type(exc).__name__,
                extra=build_log_context(project_id=project_id),
            )
            raise

        self._artifact = artifact
        self._advance(ExportStatus.SUCCESS, 100)
        logger.info(
            "Report export completed project_id=%s format=%s rows=%s",
            project_id, self.request.format.value, artifact.row_count,
            extra=build_log_context(project_id=project_id),
        )
        return artifact
