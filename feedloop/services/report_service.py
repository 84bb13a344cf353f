"""Report service - filtering, pagination, detail assembly, and updates."""

import logging
import uuid
from dataclasses import asdict
from typing import Any

from sqlalchemy import ColumnElement, Select, case, func, or_, select
from sqlalchemy.orm import Session

from feedloop.core.errors import NotFoundError
from feedloop.core.structured_logging import build_log_context
from feedloop.db.enums import (
    DEFAULT_REPORT_STATUS, PRIORITY_RANK, ReportPriority, ReportType
)
from feedloop.db.models import Attachment, Project, Report, User
from feedloop.db.types import utcnow
from feedloop.schemas.report import (
    AttachmentRead, CreatorRead, ReportDetail, ReportFilter, ReportListItem,
    ReportListQuery, ReportSort,
)
from feedloop.utils.normalization import escape_like_string, normalize_email
from feedloop.utils.pagination import PaginationMeta, PaginationParams, paginate_select

logger = logging.getLogger(__name__)

NULL_PRIORITY_KEY = "null"


# =============================================================================
# Query building
# =============================================================================

def _contains(value: str) -> str:
    return f"%{escape_like_string(value)}%"


def build_filter_conditions(project_id: uuid.UUID, filters: ReportFilter) -> list[ColumnElement]:
    """
    Translate list filters into SQL conditions, combined with AND.

    title matches title or description, reporter matches name or email,
    both case-insensitive substrings. Date bounds are inclusive.
    """
    conditions: list[ColumnElement] = [Report.project_id == project_id]

    if filters.title:
        pattern = _contains(filters.title)
        conditions.append(or_(
            Report.title.ilike(pattern, escape="\\"),
            Report.description.ilike(pattern, escape="\\"),
        ))
    if filters.type:
        conditions.append(Report.type == filters.type.value)
    if filters.priority == "none":
        conditions.append(Report.priority.is_(None))
    elif filters.priority:
        conditions.append(Report.priority == filters.priority)
    if filters.reporter:
        pattern = _contains(filters.reporter)
        conditions.append(or_(
            Report.reporter_name.ilike(pattern, escape="\\"),
            Report.reporter_email.ilike(pattern, escape="\\"),
        ))
    if filters.date_from:
        conditions.append(Report.created_at >= filters.date_from)
    if filters.date_to:
        conditions.append(Report.created_at <= filters.date_to)

    return conditions


def _priority_rank(unset_rank: int) -> ColumnElement:
    return case(PRIORITY_RANK, value=Report.priority, else_=unset_rank)


def build_order_by(sort: ReportSort) -> list[ColumnElement]:
    """Requested ordering plus ``id`` as a tie-breaker so pages never overlap."""
    descending = sort.direction == "desc"
    if sort.column == "priority":
        # Unset priority sorts after every ranked value in both directions
        key = _priority_rank(0 if descending else len(PRIORITY_RANK) + 1)
        primary = key.desc() if descending else key.asc()
    else:
        column = getattr(Report, sort.column)
        primary = column.desc() if descending else column.asc()
        if sort.column == "reporter_name":
            primary = primary.nulls_last()
    return [primary, Report.id.asc()]


def build_report_query(project_id: uuid.UUID, query: ReportListQuery) -> Select:
    return (
        select(Report)
        .where(*build_filter_conditions(project_id, query.filter))
        .order_by(*build_order_by(query.sort))
    )


def compute_metadata(db: Session, conditions: list[ColumnElement]) -> dict[str, dict[str, int]]:
    """Counts by type and priority over every matching report, not just the page."""
    total_by_type = {t.value: 0 for t in ReportType}
    for report_type, count in db.execute(
        select(Report.type, func.count()).where(*conditions).group_by(Report.type)
    ):
        total_by_type[report_type] = count

    total_by_priority = {p.value: 0 for p in ReportPriority}
    total_by_priority[NULL_PRIORITY_KEY] = 0
    for priority, count in db.execute(
        select(Report.priority, func.count()).where(*conditions).group_by(Report.priority)
    ):
        total_by_priority[priority if priority is not None else NULL_PRIORITY_KEY] = count

    return {"total_by_type": total_by_type, "total_by_priority": total_by_priority}


def _attachment_counts(db: Session, report_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
    if not report_ids:
        return {}
    rows = db.execute(
        select(Attachment.report_id, func.count())
        .where(Attachment.report_id.in_(report_ids))
        .group_by(Attachment.report_id)
    )
    return {report_id: count for report_id, count in rows}


def serialize_list_item(report: Report, include: frozenset[str], attachment_counts: dict) -> dict[str, Any]:
    item = ReportListItem.model_validate(report).model_dump(mode="json")
    if "console_logs_count" in include:
        item["console_logs_count"] = len(report.console_logs or [])
    if "network_requests_count" in include:
        item["network_requests_count"] = len(report.network_requests or [])
    if "attachments_count" in include:
        item["attachments_count"] = attachment_counts.get(report.id, 0)
    return item


def list_reports(db: Session, project_id: uuid.UUID, query: ReportListQuery) -> dict[str, Any]:
    """
    One page of report summaries plus pagination and aggregate counts.

    Returns:
        {"reports": [...], "pagination": {...}, "metadata": {...}}
    """
    pagination = PaginationParams(page=query.page, limit=query.limit)
    reports, total = paginate_select(db, build_report_query(project_id, query), pagination)

    counts = (
        _attachment_counts(db, [r.id for r in reports])
        if "attachments_count" in query.include else {}
    )
    conditions = build_filter_conditions(project_id, query.filter)

    return {
        "reports": [serialize_list_item(r, query.include, counts) for r in reports],
        "pagination": asdict(PaginationMeta.create(total, pagination)),
        "metadata": compute_metadata(db, conditions),
    }


# =============================================================================
# Detail assembly
# =============================================================================

def get_project_report(db: Session, project_id: uuid.UUID, report_id: uuid.UUID) -> Report:
    """
    Fetch a report scoped by both ids.

    Raises:
        NotFoundError: report missing or belongs to another project
    """
    report = db.execute(
        select(Report).where(Report.id == report_id, Report.project_id == project_id)
    ).scalar_one_or_none()
    if report is None:
        raise NotFoundError("Report not found")
    return report


def _resolve_creator(db: Session, user_id: uuid.UUID | None) -> CreatorRead | None:
    if not user_id:
        return None
    user = db.get(User, user_id)
    if not user:
        return None
    return CreatorRead(email=user.email, name=user.display_name)


def assemble_detail(db: Session, report: Report) -> ReportDetail:
    attachments = db.execute(
        select(Attachment)
        .where(Attachment.report_id == report.id)
        .order_by(Attachment.created_at.asc(), Attachment.id.asc())
    ).scalars().all()
    return ReportDetail.model_validate(report).model_copy(update={
        "fl_attachments": [AttachmentRead.model_validate(a) for a in attachments],
        "creator": _resolve_creator(db, report.created_by),
    })


def get_report_detail(db: Session, project_id: uuid.UUID, report_id: uuid.UUID) -> ReportDetail:
    return assemble_detail(db, get_project_report(db, project_id, report_id))


def update_report(
    db: Session,
    project_id: uuid.UUID,
    report_id: uuid.UUID,
    changes: dict[str, Any],
) -> ReportDetail:
    """
    Apply a validated partial update and return the refreshed composite view.

    updated_at is always set server-side, whatever fields changed.
    """
    report = get_project_report(db, project_id, report_id)
    for field, value in changes.items():
        setattr(report, field, value)
    report.updated_at = utcnow()
    db.commit()
    db.refresh(report)
    logger.info(
        "Report updated report_id=%s fields=%s", report.id, sorted(changes),
        extra=build_log_context(project_id=project_id, report_id=report.id),
    )
    return assemble_detail(db, report)


# =============================================================================
# Creation
# =============================================================================

def create_report(
    db: Session,
    project: Project,
    *,
    title: str,
    description: str,
    report_type: str,
    priority: str | None,
    reporter_name: str | None = None,
    reporter_email: str | None = None,
    page_url: str | None = None,
    browser_info: dict[str, Any] | None = None,
    console_logs: list[dict[str, Any]] | None = None,
    network_requests: list[dict[str, Any]] | None = None,
    created_by: uuid.UUID | None = None,
) -> Report:
    """Insert a report (flushes, caller commits)."""
    report = Report(
        project_id=project.id,
        title=title,
        description=description,
        type=report_type,
        priority=priority,
        status=DEFAULT_REPORT_STATUS.value,
        reporter_name=reporter_name,
        reporter_email=normalize_email(reporter_email),
        page_url=page_url,
        browser_info=browser_info,
        console_logs=console_logs or None,
        network_requests=network_requests or None,
        created_by=created_by,
    )
    db.add(report)
    db.flush()
    return report
