from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.db import get_db
from app.models.entities import Family, FamilyMember, RoleEnum, User
from app.schemas.families import (
    FamilyCreate,
    FamilyListResponse,
    FamilyMemberListResponse,
    FamilyMemberResponse,
    FamilyResponse,
    FamilyUpdate,
    MemberRoleUpdate,
    OwnershipTransfer,
)
from app.services import membership
from app.services.access import get_member, require_family, require_family_member
from app.services.notifications import NotificationEmitter, Subjects, get_notification_emitter, publish_event

router = APIRouter(prefix="/v1/families", tags=["families"])


def _to_family_response(family: Family, my_role: RoleEnum | None) -> FamilyResponse:
    return FamilyResponse(
        id=family.id,
        name=family.name,
        description=family.description,
        currency=family.currency,
        created_by_user_id=family.created_by_user_id,
        member_count=len(family.members),
        my_role=my_role.value if my_role is not None else None,
        created_at=family.created_at,
    )


def _to_member_response(member: FamilyMember) -> FamilyMemberResponse:
    return FamilyMemberResponse(
        id=member.id,
        family_id=member.family_id,
        user_id=member.user_id,
        email=member.user.email,
        full_name=member.user.full_name,
        role=member.role.value,
        joined_at=member.joined_at,
    )


def _notify_member_left(sink: NotificationEmitter, family: Family, user_id: int, removed_by: int | None) -> None:
    publish_event(
        Subjects.FAMILY_MEMBER_LEFT,
        {
            "family_id": family.id,
            "family_name": family.name,
            "user_id": user_id,
            "removed_by": removed_by,
            "notify_user_ids": [member.user_id for member in family.members],
        },
        sink=sink,
    )


@router.get("", response_model=FamilyListResponse)
def list_families(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = membership.list_families(db, user.id)
    return FamilyListResponse(items=[_to_family_response(family, member.role) for family, member in rows])


@router.post("", response_model=FamilyResponse, status_code=201)
def create_family(
    payload: FamilyCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    family = membership.create_family(
        db,
        user,
        name=payload.name,
        currency=payload.currency,
        description=payload.description,
    )
    db.commit()
    db.refresh(family)
    return _to_family_response(family, RoleEnum.owner)


@router.get("/{family_id}", response_model=FamilyResponse)
def get_family(
    family_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    family = require_family(db, family_id)
    member = require_family_member(db, family_id, user.id)
    return _to_family_response(family, member.role)


@router.patch("/{family_id}", response_model=FamilyResponse)
def update_family(
    family_id: int,
    payload: FamilyUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    family = membership.update_family(
        db,
        user.id,
        family_id,
        name=payload.name,
        description=payload.description,
        currency=payload.currency,
    )
    db.commit()
    db.refresh(family)
    member = get_member(db, family_id, user.id)
    return _to_family_response(family, member.role if member else None)


@router.delete("/{family_id}", status_code=204)
def delete_family(
    family_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    membership.delete_family(db, user.id, family_id)
    db.commit()


@router.get("/{family_id}/members", response_model=FamilyMemberListResponse)
def list_family_members(
    family_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    members = membership.list_members(db, user.id, family_id)
    return FamilyMemberListResponse(items=[_to_member_response(member) for member in members])


@router.post("/{family_id}/members/{user_id}/role", response_model=FamilyMemberResponse)
def change_member_role(
    family_id: int,
    user_id: int,
    payload: MemberRoleUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    member = membership.change_role(db, user.id, family_id, user_id, RoleEnum(payload.role))
    db.commit()
    db.refresh(member)
    return _to_member_response(member)


@router.delete("/{family_id}/members/{user_id}", status_code=204)
def remove_family_member(
    family_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    sink: NotificationEmitter = Depends(get_notification_emitter),
):
    membership.remove_member(db, user.id, family_id, user_id)
    db.commit()
    _notify_member_left(sink, require_family(db, family_id), user_id, removed_by=user.id)


@router.post("/{family_id}/leave", status_code=204)
def leave_family(
    family_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    sink: NotificationEmitter = Depends(get_notification_emitter),
):
    membership.leave_family(db, user.id, family_id)
    db.commit()
    _notify_member_left(sink, require_family(db, family_id), user.id, removed_by=None)


@router.post("/{family_id}/transfer-ownership", response_model=FamilyMemberResponse)
def transfer_ownership(
    family_id: int,
    payload: OwnershipTransfer,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    member = membership.transfer_ownership(db, user.id, family_id, payload.user_id)
    db.commit()
    db.refresh(member)
    return _to_member_response(member)
