"""Tests for report export: selection, templates, formats and job status."""
import csv
import io
import json
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from openpyxl import load_workbook

from feedloop.core.errors import NotFoundError
from feedloop.db.enums import ExportFormat, ExportTemplate
from feedloop.schemas.export import ExportRequest
from feedloop.services.report_export_service import (
    ExportJob,
    ExportStatus,
    build_columns,
    build_filename,
    field_value,
    resolve_selection,
)

BASE = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)
NOW = datetime(2025, 3, 15, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def reports(db, test_project, make_report):
    rows = [
        dict(title="Login fails", report_type="bug", priority="high", reporter_name="Ann"),
        dict(title="=HYPERLINK(\"http://evil\")", report_type="bug", priority=None, reporter_email="x@acme.com"),
        dict(title="Dark mode", report_type="initiative", priority="low"),
    ]
    created = []
    for offset, fields in enumerate(rows):
        report = make_report(test_project, **fields)
        report.created_at = BASE + timedelta(days=offset)
        created.append(report)
    db.commit()
    return created


def _request(**overrides) -> ExportRequest:
    payload = {"format": "csv"}
    payload.update(overrides)
    return ExportRequest.model_validate(payload)


def _csv_rows(content: bytes) -> list[list[str]]:
    return list(csv.reader(io.StringIO(content.decode("utf-8"))))


# =============================================================================
# Service
# =============================================================================

def test_field_values(reports):
    login, formula, dark = reports

    assert field_value(formula, "priority") == "none"
    assert field_value(login, "reporter") == "Ann"
    assert field_value(formula, "reporter") == "x@acme.com"
    assert field_value(dark, "reporter") == "anonymous"
    assert field_value(login, "created_at") == "2025-03-01T09:30:00+00:00"
    assert field_value(login, "console_logs") == "[]"


def test_template_renames_columns_in_fixed_order():
    fields = ["created_at", "title", "reporter", "type"]

    assert build_columns(fields, ExportTemplate.DEFAULT) == ["Title", "Type", "Reporter", "Created At"]
    assert build_columns(fields, ExportTemplate.JIRA) == ["Summary", "Issue Type", "Reporter", "Created"]
    assert build_columns(fields, ExportTemplate.AZURE_DEVOPS) == [
        "Title", "Work Item Type", "Assigned To", "Created Date",
    ]


def test_filename_pattern():
    assert build_filename(ExportTemplate.DEFAULT, ExportFormat.CSV, NOW) == "feedloop-reports-2025-03-15.csv"
    assert build_filename(ExportTemplate.JIRA, ExportFormat.XLSX, NOW) == "feedloop-reports-jira-2025-03-15.xlsx"


def test_report_ids_take_precedence_over_filters(db, test_project, reports):
    login, _, dark = reports
    request = _request(
        report_ids=[str(dark.id), str(login.id)],
        filters={"type": "bug"},
    )

    selected = resolve_selection(db, test_project.id, request)

    assert [r.id for r in selected] == [dark.id, login.id]


def test_filters_are_evaluated_at_export_time(db, test_project, reports, make_report):
    request = _request(filters={"type": "bug", "priority": "all"})
    make_report(test_project, title="Added later", report_type="bug")

    titles = {r.title for r in resolve_selection(db, test_project.id, request)}

    assert titles == {"Login fails", "=HYPERLINK(\"http://evil\")", "Added later"}


def test_filters_with_date_range(db, test_project, reports):
    request = _request(filters={"dateRange": {"from": "2025-03-02", "to": "2025-03-03"}})

    titles = [r.title for r in resolve_selection(db, test_project.id, request)]

    assert titles == ["Dark mode", "=HYPERLINK(\"http://evil\")"]


def test_foreign_report_ids_are_ignored(db, test_user, test_project, make_report):
    from feedloop.services import project_service

    other = project_service.create_project(db, test_user, "Other")
    foreign = make_report(other)

    assert resolve_selection(db, test_project.id, _request(report_ids=[str(foreign.id)])) == []


def test_job_progresses_to_success(db, test_project, reports):
    seen = []
    job = ExportJob(_request(), on_progress=lambda status, progress: seen.append((status, progress)))
    assert job.status == ExportStatus.IDLE

    artifact = job.run(db, test_project.id, now=NOW)

    assert job.status == ExportStatus.SUCCESS
    assert job.progress == 100
    assert job.artifact is artifact
    assert [p for _, p in seen] == [0, 30, 60, 90, 100]
    assert seen[-1][0] == ExportStatus.SUCCESS


def test_job_error_keeps_message_and_no_artifact(db, test_project):
    job = ExportJob(_request())

    with pytest.raises(NotFoundError):
        job.run(db, test_project.id, now=NOW)

    assert job.status == ExportStatus.ERROR
    assert job.error == "No reports found matching the criteria"
    assert job.artifact is None


def test_csv_guards_formula_cells(db, test_project, reports):
    artifact = ExportJob(_request()).run(db, test_project.id, now=NOW)
    rows = _csv_rows(artifact.content)

    assert rows[0] == ["Title", "Description", "Type", "Priority", "Reporter", "URL", "Created At"]
    titles = [row[0] for row in rows[1:]]
    assert "'=HYPERLINK(\"http://evil\")" in titles


def test_json_export_is_list_of_objects(db, test_project, reports):
    artifact = ExportJob(_request(
        format="json",
        include_fields={"title": True, "description": False, "type": False, "priority": True,
                        "reporter": False, "url": False, "created_at": False},
    )).run(db, test_project.id, now=NOW)

    records = json.loads(artifact.content)
    assert records[0] == {"Title": "Dark mode", "Priority": "low"}
    assert artifact.media_type == "application/json"


def test_xlsx_export_has_bold_header_and_rows(db, test_project, reports):
    artifact = ExportJob(_request(format="xlsx", template="jira")).run(db, test_project.id, now=NOW)

    sheet = load_workbook(io.BytesIO(artifact.content)).active
    header = [cell.value for cell in sheet[1]]
    assert header[0] == "Summary"
    assert sheet["A1"].font.bold
    assert sheet.max_row == 4
    assert artifact.filename == "feedloop-reports-jira-2025-03-15.xlsx"


def test_xlsx_export_is_deterministic(db, test_project, reports):
    first = ExportJob(_request(format="xlsx")).run(db, test_project.id, now=NOW)
    second = ExportJob(_request(format="xlsx")).run(db, test_project.id, now=NOW)

    sheet_a = load_workbook(io.BytesIO(first.content)).active
    sheet_b = load_workbook(io.BytesIO(second.content)).active
    assert [[c.value for c in r] for r in sheet_a.iter_rows()] == [[c.value for c in r] for r in sheet_b.iter_rows()]


def test_request_rejects_bad_ids_and_formats():
    from feedloop.core.validation import Err, validate

    assert isinstance(validate(ExportRequest, {"format": "pdf"}), Err)
    assert isinstance(validate(ExportRequest, {"format": "csv", "report_ids": ["nope"]}), Err)
    assert isinstance(validate(ExportRequest, {"format": "csv", "template": "trello"}), Err)
    assert isinstance(validate(ExportRequest, {
        "format": "csv", "filters": {"dateRange": {"from": "2025-02-01", "to": "2025-01-01"}},
    }), Err)


# =============================================================================
# HTTP
# =============================================================================

@pytest.mark.asyncio
async def test_export_endpoint_returns_document_with_headers(
    authed_client: AsyncClient, test_project, reports
):
    response = await authed_client.post(
        f"/projects/{test_project.id}/reports/export",
        json={"format": "csv", "template": "azure_devops", "filters": {"type": "bug"}},
    )

    assert response.status_code == 200
    assert response.headers["x-export-count"] == "2"
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="feedloop-reports-azure_devops-')
    assert disposition.endswith('.csv"')
    rows = _csv_rows(response.content)
    assert rows[0][1] == "Description"
    assert len(rows) == 3


@pytest.mark.asyncio
async def test_export_with_no_matches_is_404(authed_client: AsyncClient, test_project, reports):
    response = await authed_client.post(
        f"/projects/{test_project.id}/reports/export",
        json={"format": "json", "filters": {"type": "feedback"}},
    )

    assert response.status_code == 404
    assert response.json()["message"] == "No reports found matching the criteria"


@pytest.mark.asyncio
async def test_export_invalid_body_is_400(authed_client: AsyncClient, test_project):
    response = await authed_client.post(
        f"/projects/{test_project.id}/reports/export", json={"format": "docx"}
    )

    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "format"


@pytest.mark.asyncio
async def test_export_requires_access(client_for, make_user, test_project, reports):
    outsider = make_user()
    async with client_for(outsider) as c:
        response = await c.post(f"/projects/{test_project.id}/reports/export", json={"format": "csv"})
    assert response.status_code == 404
