"""Project endpoints - list, create, detail, settings, rename and delete."""

from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from feedloop.core.deps import get_accessible_project, get_current_user, get_db, require_csrf_header
from feedloop.core.errors import ValidationError
from feedloop.core.project_access import require_owner
from feedloop.core.validation import unwrap, validate
from feedloop.db.enums import DeletionStatus
from feedloop.db.models import Project, User
from feedloop.schemas.project import (
    ProjectCreate,
    ProjectDeletionRequest,
    ProjectDeletionResponse,
    ProjectDetail,
    ProjectListItem,
    ProjectRead,
    ProjectSettings,
    ProjectSettingsQuery,
    ProjectUpdate,
    validate_deletion_confirmation,
)
from feedloop.services import project_service
from feedloop.services.project_deletion_service import ProjectDeletionWorkflow

router = APIRouter()


@router.get("", response_model=list[ProjectListItem])
def list_projects(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Projects the user owns or belongs to, newest first."""
    return project_service.list_projects(db, user)


@router.post(
    "",
    status_code=201,
    response_model=ProjectRead,
    dependencies=[Depends(require_csrf_header)],
)
def create_project(
    payload: Any = Body(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = unwrap(validate(ProjectCreate, payload))
    return project_service.create_project(db, user, data.name)


@router.get("/{project_id}", response_model=ProjectDetail)
def get_project(
    project: Project = Depends(get_accessible_project),
    db: Session = Depends(get_db),
):
    """Project with its owner, members and pending invitations."""
    return project_service.get_project_detail(db, project)


@router.get(
    "/{project_id}/settings",
    response_model=ProjectSettings,
    response_model_exclude_none=True,
)
def get_project_settings(
    request: Request,
    project: Project = Depends(get_accessible_project),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Project info, statistics and the caller's permissions for the settings page.

    Owner only. ``include_statistics=false`` or ``include_permissions=false``
    drops that section from the response.
    """
    require_owner(project, user.id, "Only project owners can view project settings")
    query = unwrap(
        validate(ProjectSettingsQuery, dict(request.query_params)),
        "Invalid query parameters",
    )
    return project_service.get_project_settings(
        db,
        project,
        user,
        include_statistics=query.include_statistics,
        include_permissions=query.include_permissions,
    )


@router.put(
    "/{project_id}",
    response_model=ProjectRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_project(
    payload: Any = Body(None),
    project: Project = Depends(get_accessible_project),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_owner(project, user.id, "Only project owners can update projects")
    data = unwrap(validate(ProjectUpdate, payload))
    return project_service.rename_project(db, project, data.name)


@router.delete(
    "/{project_id}",
    response_model=ProjectDeletionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def delete_project(
    payload: Any = Body(None),
    project: Project = Depends(get_accessible_project),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Delete a project and everything it owns.

    The owner must type the project name and acknowledge the consequences.
    Storage cleanup failures yield ``partial`` (200); a failed database
    transaction yields ``failed`` (500) with nothing removed.
    """
    require_owner(project, user.id, "Only project owners can delete projects")
    request = unwrap(validate(ProjectDeletionRequest, payload))
    if not validate_deletion_confirmation(request, project.name):
        raise ValidationError("Confirmation text must match the project name exactly")

    result = ProjectDeletionWorkflow(db, project, user.id).run()
    body = result.to_response()
    if result.status == DeletionStatus.FAILED:
        return JSONResponse(
            status_code=500,
            content={"error": "deletion_failed", **body.model_dump(mode="json")},
        )
    return body
