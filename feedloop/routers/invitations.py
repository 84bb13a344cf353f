"""Team invitation endpoints for a project."""

from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from feedloop.core.deps import get_accessible_project, get_current_user, get_db, require_csrf_header
from feedloop.core.project_access import require_invite_permission
from feedloop.core.validation import unwrap, validate
from feedloop.db.models import Project, User
from feedloop.schemas.project import InvitationCreate, InvitationResult, MemberRemove
from feedloop.services import membership_service

router = APIRouter(dependencies=[Depends(require_csrf_header)])


@router.post("", status_code=201, response_model=InvitationResult)
def invite_member(
    payload: Any = Body(None),
    project: Project = Depends(get_accessible_project),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Invite by email.

    Registered users join immediately; unknown emails get a pending
    invitation that is accepted when they register.
    """
    require_invite_permission(db, project, user.id)
    data = unwrap(validate(InvitationCreate, payload))
    message, member = membership_service.invite(db, project, user, data)
    return InvitationResult(message=message, member=member)


@router.delete("")
def remove_member(
    payload: Any = Body(None),
    project: Project = Depends(get_accessible_project),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Remove a member or cancel a pending invitation."""
    require_invite_permission(db, project, user.id)
    data = unwrap(validate(MemberRemove, payload))
    return {"message": membership_service.remove(db, project, data)}
