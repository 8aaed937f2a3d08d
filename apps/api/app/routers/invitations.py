from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.db import get_db
from app.models.entities import Invitation, RoleEnum, User, utcnow
from app.schemas.invitations import (
    InvitationCreate,
    InvitationListResponse,
    InvitationResponse,
    InvitationWithTokenResponse,
)
from app.services import invitations
from app.services.notifications import NotificationEmitter, Subjects, get_notification_emitter, publish_event

router = APIRouter(prefix="/v1/invitations", tags=["invitations"])


def _fields(invitation: Invitation) -> dict:
    return {
        "id": invitation.id,
        "family_id": invitation.family_id,
        "family_name": invitation.family.name,
        "inviter_user_id": invitation.inviter_user_id,
        "inviter_email": invitation.inviter.email,
        "invitee_email": invitation.invitee_email,
        "role": invitation.role.value,
        # Stale PENDING rows are reported as expired until the sweep writes it back.
        "status": invitations.effective_status(invitation, utcnow()).value,
        "message": invitation.message,
        "expires_at": invitation.expires_at,
        "responded_at": invitation.responded_at,
        "created_at": invitation.created_at,
    }


def _to_response(invitation: Invitation) -> InvitationResponse:
    return InvitationResponse(**_fields(invitation))


def _to_token_response(invitation: Invitation) -> InvitationWithTokenResponse:
    return InvitationWithTokenResponse(**_fields(invitation), token=invitation.token)


def _notify_created(sink: NotificationEmitter, invitation: Invitation) -> None:
    publish_event(
        Subjects.INVITATION_CREATED,
        {
            "invitation_id": invitation.id,
            "family_id": invitation.family_id,
            "invitee_email": invitation.invitee_email,
            "role": invitation.role.value,
            "token": invitation.token,
            "expires_at": invitation.expires_at.isoformat(),
        },
        sink=sink,
    )


@router.post("", response_model=InvitationWithTokenResponse, status_code=201)
def create_invitation(
    payload: InvitationCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    sink: NotificationEmitter = Depends(get_notification_emitter),
):
    invitation = invitations.invite(
        db,
        user,
        payload.family_id,
        str(payload.email),
        role=RoleEnum(payload.role),
        message=payload.message,
    )
    db.commit()
    db.refresh(invitation)
    _notify_created(sink, invitation)
    return _to_token_response(invitation)


@router.get("", response_model=InvitationListResponse)
def list_family_invitations(
    family_id: int = Query(),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    items = invitations.list_for_family(db, user, family_id)
    return InvitationListResponse(items=[_to_response(item) for item in items])


@router.get("/received", response_model=list[InvitationWithTokenResponse])
def list_received_invitations(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return [_to_token_response(item) for item in invitations.list_received(db, user)]


@router.get("/{token}", response_model=InvitationResponse)
def get_invitation(
    token: str,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return _to_response(invitations.get_by_token(db, token))


@router.post("/{token}/accept", response_model=InvitationResponse)
def accept_invitation(
    token: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    sink: NotificationEmitter = Depends(get_notification_emitter),
):
    invitation = invitations.accept(db, token, user)
    db.commit()
    db.refresh(invitation)
    publish_event(
        Subjects.INVITATION_ACCEPTED,
        {
            "invitation_id": invitation.id,
            "family_id": invitation.family_id,
            "user_id": user.id,
            "inviter_user_id": invitation.inviter_user_id,
        },
        sink=sink,
    )
    return _to_response(invitation)


@router.post("/{token}/decline", response_model=InvitationResponse)
def decline_invitation(
    token: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    invitation = invitations.decline(db, token, user)
    db.commit()
    db.refresh(invitation)
    return _to_response(invitation)


@router.post("/{invitation_id}/revoke", response_model=InvitationResponse)
def revoke_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    invitation = invitations.revoke(db, user, invitation_id)
    db.commit()
    db.refresh(invitation)
    return _to_response(invitation)


@router.post("/{invitation_id}/resend", response_model=InvitationWithTokenResponse, status_code=201)
def resend_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    sink: NotificationEmitter = Depends(get_notification_emitter),
):
    invitation = invitations.resend(db, user, invitation_id)
    db.commit()
    db.refresh(invitation)
    _notify_created(sink, invitation)
    return _to_token_response(invitation)
