"""Tests for the project deletion workflow and endpoint."""
from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from feedloop.db.enums import DeletionStatus
from feedloop.db.models import (
    Attachment, PendingInvitation, Project, ProjectMember, Report
)
from feedloop.services import attachment_service, membership_service
from feedloop.services.project_deletion_service import ProjectDeletionWorkflow
from feedloop.schemas.project import InvitationCreate


@pytest.fixture
def populated(db, test_user, test_project, make_user, make_report):
    """Two reports with one stored attachment each, a member and a pending invitation."""
    member = make_user()
    db.add(ProjectMember(project_id=test_project.id, user_id=member.id, role="member"))
    db.commit()
    membership_service.invite(db, test_project, test_user, InvitationCreate(email="later@acme.com"))
    for n in range(2):
        report = make_report(test_project, title=f"Report {n}")
        attachment_service.create_attachment(db, report, f"shot{n}.png", "image/png", b"png-bytes")
    db.commit()
    return test_project


def _count(db, model, *conditions) -> int:
    return db.execute(select(func.count()).select_from(model).where(*conditions)).scalar_one()


def _deletion_body(name="Test Project", **overrides):
    body = {"confirmation_text": name, "understood_consequences": True}
    body.update(overrides)
    return body


def test_completed_deletion_removes_everything(db, test_user, populated, local_storage):
    keys = list(db.execute(select(Attachment.storage_key)).scalars())
    project_id = populated.id

    result = ProjectDeletionWorkflow(db, populated, test_user.id).run()

    assert result.status == DeletionStatus.COMPLETED
    assert result.storage_files_deleted == 2
    assert result.storage_cleanup_failures == []
    # 2 attachments + 2 reports + 2 memberships + 1 invitation + 1 project
    assert result.database_records_deleted == 8
    assert result.completed_at is not None
    assert _count(db, Project, Project.id == project_id) == 0
    assert _count(db, Report) == 0
    assert _count(db, Attachment) == 0
    assert _count(db, ProjectMember, ProjectMember.project_id == project_id) == 0
    assert _count(db, PendingInvitation) == 0
    assert not any((local_storage / key).exists() for key in keys)


def test_storage_failures_give_partial_status(db, test_user, populated):
    def flaky_delete(keys):
        return len(keys) - 1, [f"{keys[0]}: AccessDenied"]

    result = ProjectDeletionWorkflow(db, populated, test_user.id, delete_files=flaky_delete).run()
    response = result.to_response()

    assert result.status == DeletionStatus.PARTIAL
    assert response.success is True
    assert response.cleanup_summary.storage_files_deleted == 1
    assert len(response.cleanup_summary.storage_cleanup_failures) == 1
    assert response.error_details.code == "PARTIAL_STORAGE_CLEANUP_FAILURE"
    assert response.error_details.recoverable is False
    assert _count(db, Project) == 0


def test_storage_backend_exception_is_recorded_not_raised(db, test_user, populated):
    def broken_delete(keys):
        raise attachment_service.StorageError("bucket unreachable")

    result = ProjectDeletionWorkflow(db, populated, test_user.id, delete_files=broken_delete).run()

    assert result.status == DeletionStatus.PARTIAL
    assert len(result.storage_cleanup_failures) == 2
    assert _count(db, Report) == 0


def test_database_failure_gives_failed_status_and_keeps_rows(db, test_user, populated):
    workflow = ProjectDeletionWorkflow(db, populated, test_user.id, delete_files=lambda keys: (len(keys), []))
    original_execute = db.execute
    calls = {"n": 0}

    def failing_execute(stmt, *args, **kwargs):
        if getattr(stmt, "is_delete", False):
            calls["n"] += 1
            if calls["n"] == 3:
                raise OperationalError("DELETE", {}, Exception("lost connection"))
        return original_execute(stmt, *args, **kwargs)

    db.execute = failing_execute
    try:
        result = workflow.run()
    finally:
        db.execute = original_execute

    assert result.status == DeletionStatus.FAILED
    assert result.error_details.code == "DATABASE_DELETE_ERROR"
    assert result.error_details.recoverable is True
    assert "lost connection" not in result.error_details.message
    assert result.to_response().success is False
    assert _count(db, Project) == 1
    assert _count(db, Report) == 2


# =============================================================================
# HTTP
# =============================================================================

@pytest.mark.asyncio
async def test_delete_endpoint_completed(authed_client: AsyncClient, db, populated):
    response = await authed_client.request(
        "DELETE", f"/projects/{populated.id}", json=_deletion_body(deletion_reason="Shutting down")
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "completed"
    assert body["cleanup_summary"]["storage_files_deleted"] == 2
    assert body["error_details"] is None


@pytest.mark.asyncio
async def test_delete_endpoint_failed_is_500(authed_client: AsyncClient, db, test_project, monkeypatch):
    from feedloop.services.project_deletion_service import DeletionResult

    def fake_run(self):
        result = DeletionResult(
            project_id=self.project_id,
            initiated_by=self.initiated_by,
            initiated_at=test_project.created_at,
            status=DeletionStatus.FAILED,
        )
        return result

    monkeypatch.setattr(ProjectDeletionWorkflow, "run", fake_run)

    response = await authed_client.request("DELETE", f"/projects/{test_project.id}", json=_deletion_body())

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["status"] == "failed"
    assert body["error"] == "deletion_failed"


@pytest.mark.asyncio
async def test_delete_requires_matching_name(authed_client: AsyncClient, db, test_project):
    response = await authed_client.request(
        "DELETE", f"/projects/{test_project.id}", json=_deletion_body(name="test project")
    )

    assert response.status_code == 400
    assert _count(db, Project) == 1


@pytest.mark.asyncio
async def test_delete_requires_acknowledgement(authed_client: AsyncClient, test_project):
    response = await authed_client.request(
        "DELETE", f"/projects/{test_project.id}", json=_deletion_body(understood_consequences=False)
    )

    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "understood_consequences"


@pytest.mark.asyncio
async def test_only_owner_can_delete(client_for, db, make_user, test_project):
    member = make_user()
    db.add(ProjectMember(project_id=test_project.id, user_id=member.id, role="admin", can_invite=True))
    db.commit()

    async with client_for(member) as c:
        response = await c.request("DELETE", f"/projects/{test_project.id}", json=_deletion_body())

    assert response.status_code == 403
    assert response.json()["message"] == "Only project owners can delete projects"


def test_s3_batch_failure_falls_back_to_single_deletes(monkeypatch):
    from botocore.exceptions import ClientError

    from feedloop.core.config import settings

    s3 = MagicMock()
    s3.delete_objects.side_effect = ClientError({"Error": {"Code": "500", "Message": "x"}}, "DeleteObjects")
    s3.delete_object.side_effect = [None, ClientError({"Error": {"Code": "403", "Message": "no"}}, "DeleteObject")]
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "s3")
    monkeypatch.setattr(attachment_service, "get_s3_client", lambda: s3)

    deleted, failures = attachment_service.delete_files(["a", "b"])

    assert deleted == 1
    assert len(failures) == 1 and failures[0].startswith("b:")
