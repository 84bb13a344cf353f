"""Project service - creation, listing, detail, settings and rename."""

import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from feedloop.core.security import generate_integration_key
from feedloop.db.enums import MemberRole
from feedloop.core.project_access import can_invite_to_project
from feedloop.db.models import Attachment, PendingInvitation, Project, ProjectMember, Report, User
from feedloop.db.types import utcnow
from feedloop.schemas.project import (
    ProjectDetail,
    ProjectListItem,
    ProjectPermissions,
    ProjectRead,
    ProjectSettings,
    ProjectStatistics,
)
from feedloop.services import membership_service

logger = logging.getLogger(__name__)


def create_project(db: Session, owner: User, name: str) -> Project:
    """Create a project and the owner's membership row."""
    project = Project(
        name=name.strip(),
        owner_id=owner.id,
        integration_key=generate_integration_key(),
    )
    db.add(project)
    db.flush()
    db.add(ProjectMember(
        project_id=project.id,
        user_id=owner.id,
        role=MemberRole.OWNER.value,
        can_invite=True,
    ))
    db.commit()
    db.refresh(project)
    logger.info("Project created project_id=%s owner_id=%s", project.id, owner.id)
    return project


def list_projects(db: Session, user: User) -> list[ProjectListItem]:
    """Projects the user owns or belongs to, newest first."""
    membership = (
        select(ProjectMember.project_id, ProjectMember.role)
        .where(ProjectMember.user_id == user.id)
        .subquery()
    )
    rows = db.execute(
        select(Project, membership.c.role)
        .outerjoin(membership, membership.c.project_id == Project.id)
        .where(or_(Project.owner_id == user.id, membership.c.project_id.is_not(None)))
        .order_by(Project.created_at.desc(), Project.id.asc())
    ).all()

    project_ids = [project.id for project, _ in rows]
    counts: dict[uuid.UUID, int] = {}
    if project_ids:
        counts = dict(db.execute(
            select(Report.project_id, func.count())
            .where(Report.project_id.in_(project_ids))
            .group_by(Report.project_id)
        ).all())

    items = []
    for project, role in rows:
        if project.owner_id == user.id:
            role = MemberRole.OWNER.value
        items.append(ProjectListItem(
            **ProjectRead.model_validate(project).model_dump(),
            role=role or MemberRole.MEMBER.value,
            report_count=counts.get(project.id, 0),
        ))
    return items


def get_project_by_integration_key(db: Session, integration_key: str) -> Project | None:
    return db.execute(
        select(Project).where(Project.integration_key == integration_key)
    ).scalar_one_or_none()


def get_project_detail(db: Session, project: Project) -> ProjectDetail:
    return ProjectDetail.model_validate(project).model_copy(update={
        "members": membership_service.list_members(db, project),
    })


def rename_project(db: Session, project: Project, name: str) -> Project:
    project.name = name.strip()
    project.updated_at = utcnow()
    db.commit()
    db.refresh(project)
    return project


def get_project_statistics(db: Session, project: Project) -> ProjectStatistics:
    """Everything a project deletion would remove, counted."""
    member_count = db.scalar(
        select(func.count()).select_from(ProjectMember).where(ProjectMember.project_id == project.id)
    )
    pending_count = db.scalar(
        select(func.count()).select_from(PendingInvitation).where(
            PendingInvitation.project_id == project.id,
            PendingInvitation.accepted_at.is_(None),
            PendingInvitation.expires_at > utcnow(),
        )
    )
    report_count = db.scalar(
        select(func.count()).select_from(Report).where(Report.project_id == project.id)
    )
    attachment_count, storage = db.execute(
        select(func.count(Attachment.id), func.coalesce(func.sum(Attachment.file_size), 0))
        .join(Report, Report.id == Attachment.report_id)
        .where(Report.project_id == project.id)
    ).one()
    return ProjectStatistics(
        member_count=member_count or 0,
        pending_invitation_count=pending_count or 0,
        report_count=report_count or 0,
        attachment_count=attachment_count,
        total_storage_usage=storage,
    )


def get_project_settings(
    db: Session,
    project: Project,
    user: User,
    *,
    include_statistics: bool = True,
    include_permissions: bool = True,
) -> ProjectSettings:
    settings = ProjectSettings(project=ProjectRead.model_validate(project))
    if include_statistics:
        settings.statistics = get_project_statistics(db, project)
    if include_permissions:
        is_owner = project.owner_id == user.id
        settings.permissions = ProjectPermissions(
            can_delete=is_owner,
            can_modify=is_owner,
            can_invite=can_invite_to_project(db, project, user.id),
        )
    return settings
