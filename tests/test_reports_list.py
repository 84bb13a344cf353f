"""Tests for the report list: filtering, sorting, pagination and metadata."""
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

BASE = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def seeded(db, test_project, make_report):
    """Five reports with distinct types, priorities, reporters and creation times."""
    rows = [
        dict(title="Login fails", report_type="bug", priority="high", reporter_name="Ann", reporter_email="ann@acme.com"),
        dict(title="Dark mode", report_type="initiative", priority="low", reporter_name="Bob", reporter_email="bob@acme.com"),
        dict(title="Love it", report_type="feedback", priority=None, reporter_name=None, reporter_email="cy@acme.com"),
        dict(title="Crash on save", report_type="bug", priority="critical", reporter_name="Dee", reporter_email=None),
        dict(title="Typo 100% off", report_type="bug", priority="medium", reporter_name="Eve", reporter_email="eve@acme.com"),
    ]
    reports = []
    for offset, fields in enumerate(rows):
        report = make_report(test_project, description=f"{fields['title']} details", **fields)
        report.created_at = BASE + timedelta(days=offset)
        reports.append(report)
    db.commit()
    return reports


def _url(project, query=""):
    return f"/projects/{project.id}/reports{query}"


@pytest.mark.asyncio
async def test_list_defaults_newest_first(authed_client: AsyncClient, test_project, seeded):
    response = await authed_client.get(_url(test_project))

    assert response.status_code == 200
    data = response.json()
    assert [r["title"] for r in data["reports"]][:2] == ["Typo 100% off", "Crash on save"]
    assert data["pagination"] == {
        "page": 1, "limit": 20, "total": 5, "total_pages": 1, "has_next": False, "has_prev": False,
    }


@pytest.mark.asyncio
async def test_default_order_is_strictly_newest_first(authed_client: AsyncClient, test_project, seeded):
    response = await authed_client.get(_url(test_project))

    reports = response.json()["reports"]
    assert [r["id"] for r in reports] == [str(r.id) for r in reversed(seeded)]
    created = [datetime.fromisoformat(r["created_at"].replace("Z", "+00:00")) for r in reports]
    assert all(earlier >= later for earlier, later in zip(created, created[1:]))


@pytest.mark.asyncio
async def test_identical_timestamps_page_without_overlap(
    authed_client: AsyncClient, db, test_project, make_report
):
    reports = [make_report(test_project, title=f"Same time {i}") for i in range(5)]
    for report in reports:
        report.created_at = BASE
    db.commit()

    pages = [
        (await authed_client.get(_url(test_project, f"?limit=2&page={page}"))).json()["reports"]
        for page in (1, 2, 3)
    ]

    ids = [r["id"] for page in pages for r in page]
    assert [len(page) for page in pages] == [2, 2, 1]
    assert sorted(ids) == sorted(str(r.id) for r in reports)
    assert ids == sorted(ids)


@pytest.mark.asyncio
async def test_page_past_the_end_is_empty(authed_client: AsyncClient, test_project, make_report):
    for i in range(3):
        make_report(test_project, title=f"Report {i}")

    response = await authed_client.get(_url(test_project, "?page=2&limit=5"))

    assert response.status_code == 200
    data = response.json()
    assert data["reports"] == []
    assert data["pagination"]["page"] == 2
    assert data["pagination"]["limit"] == 5
    assert data["pagination"]["total"] == 3
    assert data["pagination"]["has_next"] is False


@pytest.mark.asyncio
async def test_huge_page_number_is_400(authed_client: AsyncClient, test_project):
    response = await authed_client.get(_url(test_project, "?page=10000000000000000000"))

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["details"][0]["field"] == "page"


@pytest.mark.asyncio
@pytest.mark.parametrize("query, field", [
    ("?filter[type]=bogus", "filter.type"),
    ("?filter[priority]=urgent", "filter.priority"),
])
async def test_unknown_filter_value_is_400(authed_client: AsyncClient, test_project, query, field):
    response = await authed_client.get(_url(test_project, query))

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Invalid query parameters"
    assert [d["field"] for d in body["details"]] == [field]


@pytest.mark.asyncio
async def test_list_items_never_include_status(authed_client: AsyncClient, test_project, seeded):
    response = await authed_client.get(_url(test_project))

    for item in response.json()["reports"]:
        assert "status" not in item


@pytest.mark.asyncio
async def test_filter_by_type_and_priority(authed_client: AsyncClient, test_project, seeded):
    response = await authed_client.get(_url(test_project, "?filter[type]=bug&filter[priority]=high"))

    titles = [r["title"] for r in response.json()["reports"]]
    assert titles == ["Login fails"]


@pytest.mark.asyncio
async def test_filter_priority_none_selects_unset(authed_client: AsyncClient, test_project, seeded):
    response = await authed_client.get(_url(test_project, "?filter[priority]=none"))

    reports = response.json()["reports"]
    assert [r["title"] for r in reports] == ["Love it"]
    assert reports[0]["priority"] is None


@pytest.mark.asyncio
async def test_filter_feature_alias_maps_to_initiative(authed_client: AsyncClient, test_project, seeded):
    response = await authed_client.get(_url(test_project, "?filter[type]=feature"))

    assert [r["title"] for r in response.json()["reports"]] == ["Dark mode"]


@pytest.mark.asyncio
async def test_title_filter_matches_description_and_escapes_wildcards(
    authed_client: AsyncClient, test_project, seeded
):
    response = await authed_client.get(_url(test_project, "?filter[title]=100%25"))
    assert [r["title"] for r in response.json()["reports"]] == ["Typo 100% off"]

    response = await authed_client.get(_url(test_project, "?filter[title]=SAVE DETAILS"))
    assert [r["title"] for r in response.json()["reports"]] == ["Crash on save"]


@pytest.mark.asyncio
async def test_reporter_filter_matches_name_or_email(authed_client: AsyncClient, test_project, seeded):
    response = await authed_client.get(_url(test_project, "?filter[reporter]=cy@"))
    assert [r["title"] for r in response.json()["reports"]] == ["Love it"]

    response = await authed_client.get(_url(test_project, "?filter[reporter]=dee"))
    assert [r["title"] for r in response.json()["reports"]] == ["Crash on save"]


@pytest.mark.asyncio
async def test_date_range_is_inclusive_of_whole_days(authed_client: AsyncClient, test_project, seeded):
    response = await authed_client.get(
        _url(test_project, "?filter[dateFrom]=2025-01-11&filter[dateTo]=2025-01-12")
    )

    titles = {r["title"] for r in response.json()["reports"]}
    assert titles == {"Dark mode", "Love it"}


@pytest.mark.asyncio
async def test_invalid_date_is_400(authed_client: AsyncClient, test_project, seeded):
    response = await authed_client.get(_url(test_project, "?filter[dateFrom]=yesterday"))

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["details"][0]["field"] == "filter.dateFrom"


@pytest.mark.asyncio
async def test_sort_by_priority_uses_severity_with_unset_last(
    authed_client: AsyncClient, test_project, seeded
):
    response = await authed_client.get(
        _url(test_project, "?sort[column]=priority&sort[direction]=desc")
    )
    assert [r["priority"] for r in response.json()["reports"]] == [
        "critical", "high", "medium", "low", None,
    ]

    response = await authed_client.get(
        _url(test_project, "?sort[column]=priority&sort[direction]=asc")
    )
    assert [r["priority"] for r in response.json()["reports"]] == [
        "low", "medium", "high", "critical", None,
    ]


@pytest.mark.asyncio
async def test_pagination_pages_do_not_overlap(authed_client: AsyncClient, test_project, seeded):
    first = (await authed_client.get(_url(test_project, "?limit=2&page=1"))).json()
    second = (await authed_client.get(_url(test_project, "?limit=2&page=2"))).json()
    third = (await authed_client.get(_url(test_project, "?limit=2&page=3"))).json()

    ids = [r["id"] for page in (first, second, third) for r in page["reports"]]
    assert len(ids) == len(set(ids)) == 5
    assert first["pagination"]["has_next"] is True
    assert third["pagination"] == {
        "page": 3, "limit": 2, "total": 5, "total_pages": 3, "has_next": False, "has_prev": True,
    }


@pytest.mark.asyncio
async def test_limit_is_capped_at_100(authed_client: AsyncClient, test_project, seeded):
    response = await authed_client.get(_url(test_project, "?limit=1000"))
    assert response.json()["pagination"]["limit"] == 100


@pytest.mark.asyncio
async def test_metadata_counts_cover_all_matches(authed_client: AsyncClient, test_project, seeded):
    response = await authed_client.get(_url(test_project, "?limit=1"))

    metadata = response.json()["metadata"]
    assert metadata["total_by_type"] == {"bug": 3, "initiative": 1, "feedback": 1}
    assert metadata["total_by_priority"] == {
        "low": 1, "medium": 1, "high": 1, "critical": 1, "null": 1,
    }


@pytest.mark.asyncio
async def test_include_counts(authed_client: AsyncClient, db, test_project, make_report):
    report = make_report(
        test_project,
        console_logs=[{"type": "error", "message": "boom", "timestamp": "t"}] * 3,
    )

    response = await authed_client.get(
        _url(test_project, "?include=console_logs_count,attachments_count")
    )

    item = response.json()["reports"][0]
    assert item["id"] == str(report.id)
    assert item["console_logs_count"] == 3
    assert item["attachments_count"] == 0
    assert "network_requests_count" not in item


@pytest.mark.asyncio
async def test_other_projects_reports_are_not_listed(
    authed_client: AsyncClient, db, test_user, test_project, make_report
):
    from feedloop.services import project_service

    other = project_service.create_project(db, test_user, "Other")
    make_report(other, title="Elsewhere")

    response = await authed_client.get(_url(test_project))
    assert response.json()["reports"] == []


@pytest.mark.asyncio
async def test_list_requires_session(client: AsyncClient, test_project):
    response = await client.get(_url(test_project))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_list_for_non_member_is_404(client_for, make_user, test_project):
    outsider = make_user()
    async with client_for(outsider) as c:
        response = await c.get(_url(test_project))

    assert response.status_code == 404
    assert response.json()["message"] == "Project not found or access denied"


@pytest.mark.asyncio
async def test_malformed_project_id_is_400(authed_client: AsyncClient):
    response = await authed_client.get("/projects/not-a-uuid/reports")

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid project ID format"
