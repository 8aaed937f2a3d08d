"""
Family invitations.

Expiry is evaluated lazily: a stored PENDING invitation whose ``expires_at`` has
passed is reported as EXPIRED by every read (``effective_status``). Only the
sweep, and ``invite`` for stale rows of the same family/email, write EXPIRED back.
Rejected operations never write.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    AlreadyMember,
    DuplicatePending,
    EmailMismatch,
    Expired,
    Forbidden,
    InvalidState,
    InvalidToken,
    NotFound,
    ValidationFailed,
)
from app.models.entities import (
    TERMINAL_INVITATION_STATUSES,
    Invitation,
    InvitationStatusEnum,
    RoleEnum,
    User,
    utcnow,
)
from app.services.access import get_member, lock_family, require_family_admin, role_rank
from app.services.membership import add_member
from app.services.users import normalize_email, resolve_user

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32  # 256 bits


def new_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def invitation_ttl() -> timedelta:
    return timedelta(days=settings.invitation_ttl_days)


def is_expired(invitation: Invitation, now: datetime) -> bool:
    return now > invitation.expires_at


def effective_status(invitation: Invitation, now: datetime | None = None) -> InvitationStatusEnum:
    now = now or utcnow()
    if invitation.status == InvitationStatusEnum.pending and is_expired(invitation, now):
        return InvitationStatusEnum.expired
    return invitation.status


def _expire_stale(db: Session, family_id: int, email: str, now: datetime) -> None:
    db.execute(
        update(Invitation)
        .where(
            Invitation.family_id == family_id,
            Invitation.invitee_email == email,
            Invitation.status == InvitationStatusEnum.pending,
            Invitation.expires_at < now,
        )
        .values(status=InvitationStatusEnum.expired)
        .execution_options(synchronize_session=False)
    )


def _transition(
    db: Session,
    invitation: Invitation,
    new_status: InvitationStatusEnum,
    now: datetime,
    invitee_user_id: int | None = None,
) -> None:
    """Compare-and-swap PENDING -> ``new_status``; losing the race is InvalidState."""
    values: dict = {"status": new_status, "responded_at": now}
    if invitee_user_id is not None:
        values["invitee_user_id"] = invitee_user_id
    result = db.execute(
        update(Invitation)
        .where(Invitation.id == invitation.id, Invitation.status == InvitationStatusEnum.pending)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidState("invitation is no longer pending")
    db.refresh(invitation)


def _require_resolvable(invitation: Invitation, now: datetime) -> None:
    # Stale PENDING and swept EXPIRED rows fail the same way.
    status = effective_status(invitation, now)
    if status == InvitationStatusEnum.expired:
        raise Expired("invitation has expired")
    if status in TERMINAL_INVITATION_STATUSES:
        raise InvalidState(f"invitation is already {status.value}")


def invite(
    db: Session,
    inviter: User,
    family_id: int,
    email: str,
    role: RoleEnum = RoleEnum.member,
    message: str | None = None,
    now: datetime | None = None,
) -> Invitation:
    now = now or utcnow()
    email = normalize_email(email)
    role = RoleEnum(role)

    lock_family(db, family_id)
    inviter_member = require_family_admin(db, family_id, inviter.id)
    if role_rank(role) > role_rank(inviter_member.role):
        raise Forbidden("cannot invite with a role above your own")
    if email == normalize_email(inviter.email):
        raise ValidationFailed("cannot invite yourself")

    invitee = resolve_user(db, email)
    if invitee is not None and get_member(db, family_id, invitee.id) is not None:
        raise AlreadyMember("user is already a member of this family")

    pending = db.execute(
        select(Invitation.id).where(
            Invitation.family_id == family_id,
            Invitation.invitee_email == email,
            Invitation.status == InvitationStatusEnum.pending,
            Invitation.expires_at >= now,
        )
    ).first()
    if pending is not None:
        raise DuplicatePending("a pending invitation already exists for this email")

    _expire_stale(db, family_id, email, now)
    invitation = Invitation(
        family_id=family_id,
        inviter_user_id=inviter.id,
        invitee_email=email,
        role=role,
        status=InvitationStatusEnum.pending,
        token=new_token(),
        message=message,
        expires_at=now + invitation_ttl(),
        created_at=now,
    )
    db.add(invitation)
    db.flush()
    logger.info("invitation %s created for family %s by user %s", invitation.id, family_id, inviter.id)
    return invitation


def get_by_token(db: Session, token: str) -> Invitation:
    invitation = db.execute(select(Invitation).where(Invitation.token == token)).scalar_one_or_none()
    if invitation is None:
        raise InvalidToken("invitation not found")
    return invitation


def require_invitation(db: Session, invitation_id: int) -> Invitation:
    invitation = db.get(Invitation, invitation_id)
    if invitation is None:
        raise NotFound("invitation not found")
    return invitation


def _require_invitee(invitation: Invitation, user: User) -> None:
    if normalize_email(invitation.invitee_email) != normalize_email(user.email):
        raise EmailMismatch("invitation was sent to a different email")


def accept(db: Session, token: str, acting_user: User, now: datetime | None = None) -> Invitation:
    now = now or utcnow()
    invitation = get_by_token(db, token)
    _require_resolvable(invitation, now)
    _require_invitee(invitation, acting_user)

    _transition(db, invitation, InvitationStatusEnum.accepted, now, invitee_user_id=acting_user.id)
    add_member(db, invitation.family_id, acting_user.id, invitation.role)
    logger.info("invitation %s accepted by user %s", invitation.id, acting_user.id)
    return invitation


def decline(db: Session, token: str, acting_user: User, now: datetime | None = None) -> Invitation:
    now = now or utcnow()
    invitation = get_by_token(db, token)
    _require_resolvable(invitation, now)
    _require_invitee(invitation, acting_user)

    _transition(db, invitation, InvitationStatusEnum.declined, now, invitee_user_id=acting_user.id)
    logger.info("invitation %s declined by user %s", invitation.id, acting_user.id)
    return invitation


def revoke(db: Session, actor: User, invitation_id: int, now: datetime | None = None) -> Invitation:
    now = now or utcnow()
    invitation = require_invitation(db, invitation_id)
    require_family_admin(db, invitation.family_id, actor.id)
    _require_resolvable(invitation, now)

    _transition(db, invitation, InvitationStatusEnum.revoked, now)
    logger.info("invitation %s revoked by user %s", invitation.id, actor.id)
    return invitation


def resend(db: Session, actor: User, invitation_id: int, now: datetime | None = None) -> Invitation:
    """Retire a pending or expired invitation and issue a fresh token to the same email."""
    now = now or utcnow()
    old = require_invitation(db, invitation_id)
    require_family_admin(db, old.family_id, actor.id)
    if effective_status(old, now) not in (InvitationStatusEnum.pending, InvitationStatusEnum.expired):
        raise InvalidState(f"invitation is already {old.status.value}")

    if not is_expired(old, now):
        _transition(db, old, InvitationStatusEnum.revoked, now)
    return invite(db, actor, old.family_id, old.invitee_email, old.role, old.message, now=now)


def list_received(db: Session, user: User, now: datetime | None = None) -> list[Invitation]:
    now = now or utcnow()
    return list(
        db.execute(
            select(Invitation)
            .where(
                Invitation.invitee_email == normalize_email(user.email),
                Invitation.status == InvitationStatusEnum.pending,
                Invitation.expires_at >= now,
            )
            .order_by(Invitation.id.asc())
        ).scalars().all()
    )


def count_pending(db: Session, user: User, now: datetime | None = None) -> int:
    now = now or utcnow()
    return db.execute(
        select(func.count(Invitation.id)).where(
            Invitation.invitee_email == normalize_email(user.email),
            Invitation.status == InvitationStatusEnum.pending,
            Invitation.expires_at >= now,
        )
    ).scalar_one()


def list_for_family(db: Session, actor: User, family_id: int) -> list[Invitation]:
    require_family_admin(db, family_id, actor.id)
    return list(
        db.execute(
            select(Invitation).where(Invitation.family_id == family_id).order_by(Invitation.id.asc())
        ).scalars().all()
    )


def sweep_expired(db: Session, now: datetime | None = None) -> int:
    """Persist EXPIRED for every stale PENDING row. Safe to run repeatedly."""
    now = now or utcnow()
    result = db.execute(
        update(Invitation)
        .where(Invitation.status == InvitationStatusEnum.pending, Invitation.expires_at < now)
        .values(status=InvitationStatusEnum.expired)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info("expired %s stale invitations", result.rowcount)
    return result.rowcount
