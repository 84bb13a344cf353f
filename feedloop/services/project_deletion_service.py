"""Project deletion workflow.

Deleting a project runs an explicit, ordered list of steps:

1. storage objects for every attachment (failures recorded, not fatal)
2. attachment rows
3. report rows
4. team memberships
5. pending invitations
6. the project row

Steps 2-6 share one database transaction. The composite result is
``completed`` when everything succeeded, ``partial`` when only storage
deletions failed, and ``failed`` when the database transaction did not
commit (in which case nothing was removed from the database).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import Delete, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from feedloop.core.errors import log_internal_error
from feedloop.core.structured_logging import build_log_context
from feedloop.db.enums import DeletionStatus
from feedloop.db.models import Attachment, PendingInvitation, Project, ProjectMember, Report
from feedloop.db.types import utcnow
from feedloop.schemas.project import (
    CleanupSummary, DeletionErrorDetails, ProjectDeletionResponse
)
from feedloop.services import attachment_service

logger = logging.getLogger(__name__)

PARTIAL_STORAGE_CLEANUP_FAILURE = "PARTIAL_STORAGE_CLEANUP_FAILURE"
DATABASE_DELETE_ERROR = "DATABASE_DELETE_ERROR"

FileDeleter = Callable[[list[str]], tuple[int, list[str]]]


@dataclass
class StepOutcome:
    """What one workflow step did."""
    name: str
    succeeded: bool
    records_deleted: int = 0
    files_deleted: int = 0
    failures: list[str] = field(default_factory=list)


@dataclass
class DeletionResult:
    project_id: uuid.UUID
    initiated_by: uuid.UUID
    initiated_at: datetime
    status: DeletionStatus = DeletionStatus.IN_PROGRESS
    completed_at: datetime | None = None
    steps: list[StepOutcome] = field(default_factory=list)
    error_details: DeletionErrorDetails | None = None

    @property
    def database_records_deleted(self) -> int:
        return sum(s.records_deleted for s in self.steps)

    @property
    def storage_files_deleted(self) -> int:
        return sum(s.files_deleted for s in self.steps)

    @property
    def storage_cleanup_failures(self) -> list[str]:
        return [f for s in self.steps for f in s.failures]

    @property
    def message(self) -> str:
        if self.status == DeletionStatus.COMPLETED:
            return "Project deleted successfully"
        if self.status == DeletionStatus.PARTIAL:
            return "Project deleted; some storage files could not be removed"
        return "Failed to delete project"

    def to_response(self) -> ProjectDeletionResponse:
        return ProjectDeletionResponse(
            success=self.status != DeletionStatus.FAILED,
            status=self.status.value,
            message=self.message,
            project_id=self.project_id,
            initiated_by=self.initiated_by,
            initiated_at=self.initiated_at,
            completed_at=self.completed_at,
            cleanup_summary=CleanupSummary(
                database_records_deleted=self.database_records_deleted,
                storage_files_deleted=self.storage_files_deleted,
                storage_cleanup_failures=self.storage_cleanup_failures,
            ),
            error_details=self.error_details,
        )


class ProjectDeletionWorkflow:
    """Ordered cascading delete of a project and everything it owns."""

    def __init__(
        self,
        db: Session,
        project: Project,
        initiated_by: uuid.UUID,
        *,
        delete_files: FileDeleter | None = None,
    ) -> None:
        self.db = db
        self.project_id = project.id
        self.initiated_by = initiated_by
        self._delete_files = delete_files or attachment_service.delete_files

    def _report_ids(self):
        return select(Report.id).where(Report.project_id == self.project_id)

    def _database_steps(self) -> list[tuple[str, Delete]]:
        return [
            ("attachments", delete(Attachment).where(Attachment.report_id.in_(self._report_ids()))),
            ("reports", delete(Report).where(Report.project_id == self.project_id)),
            ("memberships", delete(ProjectMember).where(ProjectMember.project_id == self.project_id)),
            ("pending_invitations", delete(PendingInvitation).where(PendingInvitation.project_id == self.project_id)),
            ("project", delete(Project).where(Project.id == self.project_id)),
        ]

    def _log_context(self) -> dict:
        return build_log_context(user_id=self.initiated_by, project_id=self.project_id)

    def _delete_storage(self) -> StepOutcome:
        keys = list(self.db.execute(
            select(Attachment.storage_key).where(Attachment.report_id.in_(self._report_ids()))
        ).scalars())
        try:
            deleted, failures = self._delete_files(keys)
        except (attachment_service.StorageError, BotoCoreError, ClientError, OSError) as exc:
            logger.warning(
                "Storage cleanup failed project_id=%s: %s", self.project_id, exc,
                extra=self._log_context(),
            )
            deleted, failures = 0, [f"{key}: {exc}" for key in keys]
        return StepOutcome(
            name="storage_objects",
            succeeded=not failures,
            files_deleted=deleted,
            failures=failures,
        )

    def run(self) -> DeletionResult:
        result = DeletionResult(
            project_id=self.project_id,
            initiated_by=self.initiated_by,
            initiated_at=utcnow(),
        )
        logger.info("Project deletion started project_id=%s", self.project_id, extra=self._log_context())

        # Storage first: rows still point at every object if this step fails
        result.steps.append(self._delete_storage())

        db_steps: list[StepOutcome] = []
        try:
            for name, stmt in self._database_steps():
                outcome = self.db.execute(stmt.execution_options(synchronize_session=False))
                db_steps.append(StepOutcome(name=name, succeeded=True, records_deleted=outcome.rowcount or 0))
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            error_id = log_internal_error(exc, context=f"deleting project {self.project_id}")
            result.status = DeletionStatus.FAILED
            result.error_details = DeletionErrorDetails(
                code=DATABASE_DELETE_ERROR,
                message=f"Project deletion failed during database operation (ref: {error_id})",
                recoverable=True,
            )
            result.completed_at = utcnow()
            return result

        result.steps.extend(db_steps)
        failures = result.storage_cleanup_failures
        if failures:
            result.status = DeletionStatus.PARTIAL
            result.error_details = DeletionErrorDetails(
                code=PARTIAL_STORAGE_CLEANUP_FAILURE,
                message=f"Storage cleanup completed with {len(failures)} failures",
                recoverable=False,
            )
        else:
            result.status = DeletionStatus.COMPLETED
        result.completed_at = utcnow()
        logger.info(
            "Project deletion finished project_id=%s status=%s records=%s files=%s",
            self.project_id, result.status.value,
            result.database_records_deleted, result.storage_files_deleted,
            extra=self._log_context(),
        )
        return result
