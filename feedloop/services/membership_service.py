"""Team membership and invitation service."""

import logging
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from feedloop.core.errors import ConflictError, NotFoundError, ValidationError
from feedloop.core.project_access import get_membership
from feedloop.core.security import generate_invitation_token
from feedloop.db.enums import MemberRole
from feedloop.db.models import PendingInvitation, Project, ProjectMember, User
from feedloop.db.types import utcnow
from feedloop.schemas.auth import ProcessedInvitation
from feedloop.schemas.project import InvitationCreate, MemberRead, MemberRemove

logger = logging.getLogger(__name__)

INVITATION_EXPIRY = timedelta(days=7)


def _member_read(user: User, role: str, can_invite: bool) -> MemberRead:
    return MemberRead(
        user_id=user.id,
        email=user.email,
        name=user.display_name or None,
        role=role,
        can_invite=can_invite,
        status="active",
    )


def _active_invitations(db: Session, project_id=None, email: str | None = None):
    stmt = select(PendingInvitation).where(
        PendingInvitation.accepted_at.is_(None),
        PendingInvitation.expires_at > utcnow(),
    )
    if project_id is not None:
        stmt = stmt.where(PendingInvitation.project_id == project_id)
    if email is not None:
        stmt = stmt.where(PendingInvitation.email == email)
    return db.execute(stmt.order_by(PendingInvitation.created_at.asc())).scalars().all()


def list_members(db: Session, project: Project) -> list[MemberRead]:
    """Owner first, then members by join date, then pending invitations."""
    owner = db.get(User, project.owner_id)
    members: list[MemberRead] = []
    if owner:
        members.append(_member_read(owner, MemberRole.OWNER.value, True))

    rows = db.execute(
        select(ProjectMember, User)
        .join(User, User.id == ProjectMember.user_id)
        .where(
            ProjectMember.project_id == project.id,
            ProjectMember.user_id != project.owner_id,
        )
        .order_by(ProjectMember.created_at.asc(), ProjectMember.id.asc())
    ).all()
    members.extend(_member_read(user, m.role, m.can_invite) for m, user in rows)

    members.extend(
        MemberRead(
            invitation_id=invitation.id,
            email=invitation.email,
            role=invitation.role,
            can_invite=invitation.can_invite,
            status="pending",
        )
        for invitation in _active_invitations(db, project_id=project.id)
    )
    return members


def invite(db: Session, project: Project, inviter: User, data: InvitationCreate) -> tuple[str, MemberRead]:
    """
    Add an existing user to the team, or record a pending invitation.

    Raises:
        ValidationError: inviting the project owner
        ConflictError: already a member / already invited
    """
    email = data.email.lower()
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()

    if user:
        if user.id == project.owner_id:
            raise ValidationError("Cannot invite the project owner")
        if get_membership(db, project.id, user.id):
            raise ConflictError("User is already a member of this project")
        db.add(ProjectMember(
            project_id=project.id,
            user_id=user.id,
            role=data.role,
            can_invite=data.can_invite,
        ))
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("User is already a member of this project")
        logger.info("Member added project_id=%s user_id=%s by=%s", project.id, user.id, inviter.id)
        return f"{user.email} has been added to the project", _member_read(user, data.role, data.can_invite)

    if _active_invitations(db, project_id=project.id, email=email):
        raise ConflictError("An invitation has already been sent to this email")

    invitation = PendingInvitation(
        project_id=project.id,
        email=email,
        role=data.role,
        can_invite=data.can_invite,
        invited_by=inviter.id,
        token=generate_invitation_token(),
        expires_at=utcnow() + INVITATION_EXPIRY,
    )
    db.add(invitation)
    db.commit()
    db.refresh(invitation)
    logger.info("Invitation created project_id=%s invitation_id=%s", project.id, invitation.id)
    return (
        f"Invitation sent to {email}. They will join the project when they register.",
        MemberRead(
            invitation_id=invitation.id,
            email=email,
            role=invitation.role,
            can_invite=invitation.can_invite,
            status="pending",
        ),
    )


def remove(db: Session, project: Project, data: MemberRemove) -> str:
    """
    Remove a member or cancel a pending invitation.

    Raises:
        ValidationError: attempting to remove the owner
        NotFoundError: no such member/invitation in this project
    """
    if data.is_pending:
        invitation = db.execute(
            select(PendingInvitation).where(
                PendingInvitation.id == data.invitation_id,
                PendingInvitation.project_id == project.id,
            )
        ).scalar_one_or_none()
        if not invitation:
            raise NotFoundError("Invitation not found")
        db.delete(invitation)
        db.commit()
        return "Invitation cancelled"

    if data.user_id == project.owner_id:
        raise ValidationError("Cannot remove the project owner")
    membership = get_membership(db, project.id, data.user_id)
    if not membership:
        raise NotFoundError("Member not found")
    db.delete(membership)
    db.commit()
    logger.info("Member removed project_id=%s user_id=%s", project.id, data.user_id)
    return "Member removed"


def accept_pending_invitations(db: Session, user: User) -> list[ProcessedInvitation]:
    """Turn unexpired invitations for the user's email into memberships (caller commits)."""
    processed = []
    now = utcnow()
    for invitation in _active_invitations(db, email=user.email):
        project = db.get(Project, invitation.project_id)
        if project is None:
            continue
        if project.owner_id != user.id and not get_membership(db, project.id, user.id):
            db.add(ProjectMember(
                project_id=project.id,
                user_id=user.id,
                role=invitation.role,
                can_invite=invitation.can_invite,
            ))
            db.flush()
        invitation.accepted_at = now
        processed.append(ProcessedInvitation(
            project_id=project.id,
            project_name=project.name,
            role=invitation.role,
            can_invite=invitation.can_invite,
        ))
    return processed
