"""Project access control - centralized permission checks for project operations.

Access rules:
- Owner: full access, the only one who may rename or delete the project
- Member: read/update reports; may invite when can_invite is set
- Everyone else: the project does not exist (404, never 403)
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from feedloop.core.errors import AuthorizationError, PermissionDeniedError
from feedloop.db.models import Project, ProjectMember


def get_membership(db: Session, project_id: UUID, user_id: UUID) -> ProjectMember | None:
    return db.execute(
        select(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    ).scalar_one_or_none()


def has_project_access(db: Session, project: Project | None, user_id: UUID) -> bool:
    """True for the owner or any member of the project."""
    if project is None:
        return False
    if project.owner_id == user_id:
        return True
    return get_membership(db, project.id, user_id) is not None


def can_invite_to_project(db: Session, project: Project, user_id: UUID) -> bool:
    """Owner, or a member with can_invite set."""
    if project.owner_id == user_id:
        return True
    membership = get_membership(db, project.id, user_id)
    return bool(membership and membership.can_invite)


def get_project_for_user(db: Session, project_id: UUID, user_id: UUID) -> Project:
    """
    Load a project the user may see.

    Raises:
        AuthorizationError: project missing or inaccessible (rendered as 404)
    """
    project = db.get(Project, project_id)
    if not has_project_access(db, project, user_id):
        raise AuthorizationError()
    return project


def require_owner(project: Project, user_id: UUID, message: str) -> None:
    if project.owner_id != user_id:
        raise PermissionDeniedError(message)


def require_invite_permission(db: Session, project: Project, user_id: UUID) -> None:
    if not can_invite_to_project(db, project, user_id):
        raise PermissionDeniedError("You do not have permission to manage team members")
