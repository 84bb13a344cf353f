"""Report endpoints - list, create, detail, update and export."""

import re
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from feedloop.core.deps import (
    get_accessible_project,
    get_current_user,
    get_db,
    get_report_id,
    require_csrf_header,
)
from feedloop.core.rate_limit import EXPORT_LIMIT, limiter
from feedloop.core.validation import unwrap, validate
from feedloop.db.models import Project, User
from feedloop.schemas.export import ExportRequest
from feedloop.schemas.report import (
    ReportCreate, ReportDetail, ReportListQuery, ReportListResponse, ReportUpdate
)
from feedloop.services import report_export_service, report_service

router = APIRouter()

_BRACKETED_PARAM = re.compile(r"^(filter|sort)\[(\w+)\]$")
_PLAIN_PARAMS = ("page", "limit", "include")


def _list_query_payload(request: Request) -> dict[str, Any]:
    """Fold ``filter[x]=..&sort[y]=..`` query parameters into nested dicts."""
    payload: dict[str, Any] = {"filter": {}, "sort": {}}
    for key, value in request.query_params.multi_items():
        match = _BRACKETED_PARAM.match(key)
        if match:
            payload[match.group(1)][match.group(2)] = value
        elif key in _PLAIN_PARAMS:
            payload[key] = value
    return payload


@router.get("", response_model=ReportListResponse)
def list_reports(
    request: Request,
    project: Project = Depends(get_accessible_project),
    db: Session = Depends(get_db),
):
    """
    Filtered, sorted, paginated reports with per-type and per-priority totals.

    Query parameters: ``filter[title|type|priority|reporter|dateFrom|dateTo]``,
    ``sort[column|direction]``, ``page``, ``limit``, ``include``.
    """
    query = unwrap(validate(ReportListQuery, _list_query_payload(request)), "Invalid query parameters")
    return report_service.list_reports(db, project.id, query)


@router.post(
    "",
    status_code=201,
    response_model=ReportDetail,
    dependencies=[Depends(require_csrf_header)],
)
def create_report(
    payload: Any = Body(None),
    project: Project = Depends(get_accessible_project),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = unwrap(validate(ReportCreate, payload))
    report = report_service.create_report(
        db,
        project,
        title=data.title,
        description=data.description,
        report_type=data.type.value,
        priority=data.priority.value if data.priority else None,
        reporter_name=data.reporter_name,
        reporter_email=data.reporter_email,
        page_url=data.page_url,
        created_by=user.id,
    )
    db.commit()
    db.refresh(report)
    return report_service.assemble_detail(db, report)


@router.post("/export", dependencies=[Depends(require_csrf_header)])
@limiter.limit(EXPORT_LIMIT)
def export_reports(
    request: Request,
    payload: Any = Body(None),
    project: Project = Depends(get_accessible_project),
    db: Session = Depends(get_db),
):
    """
    Export reports as CSV, JSON or XLSX.

    Explicit ``report_ids`` win over ``filters``; with neither, every report in
    the project is exported. No matching rows is a 404.
    """
    export_request = unwrap(validate(ExportRequest, payload), "Invalid export request")
    artifact = report_export_service.ExportJob(export_request).run(db, project.id)
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{artifact.filename}"',
            "X-Export-Count": str(artifact.row_count),
        },
    )


@router.get("/{report_id}", response_model=ReportDetail)
def get_report(
    report_uuid: UUID = Depends(get_report_id),
    project: Project = Depends(get_accessible_project),
    db: Session = Depends(get_db),
):
    """Report with its attachments and the creating user's identity."""
    return report_service.get_report_detail(db, project.id, report_uuid)


@router.put(
    "/{report_id}",
    response_model=ReportDetail,
    dependencies=[Depends(require_csrf_header)],
)
def update_report(
    payload: Any = Body(None),
    report_uuid: UUID = Depends(get_report_id),
    project: Project = Depends(get_accessible_project),
    db: Session = Depends(get_db),
):
    """Partial update of title, description, status, priority or type."""
    data = unwrap(validate(ReportUpdate, payload))
    return report_service.update_report(db, project.id, report_uuid, data.changes())
