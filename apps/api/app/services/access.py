from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.errors import Forbidden, NotFound
from app.models.entities import ROLE_RANK, Family, FamilyMember, RoleEnum


def role_rank(role: RoleEnum | str) -> int:
    return ROLE_RANK[RoleEnum(role)]


def get_member(db: Session, family_id: int, user_id: int) -> FamilyMember | None:
    return db.execute(
        select(FamilyMember).where(FamilyMember.family_id == family_id, FamilyMember.user_id == user_id)
    ).scalar_one_or_none()


def require_family(db: Session, family_id: int) -> Family:
    family = db.get(Family, family_id)
    if family is None:
        raise NotFound("family not found")
    return family


def lock_family(db: Session, family_id: int) -> Family:
    """
    Load the family row FOR UPDATE.

    Every mutation of a family's member set takes this lock first, so two concurrent
    removals cannot both see "another owner exists".
    """
    family = db.execute(select(Family).where(Family.id == family_id).with_for_update()).scalar_one_or_none()
    if family is None:
        raise NotFound("family not found")
    return family


def require_family_member(db: Session, family_id: int, user_id: int) -> FamilyMember:
    member = get_member(db, family_id, user_id)
    if member is None:
        raise Forbidden("not a member of this family")
    return member


def require_family_role(db: Session, family_id: int, user_id: int, required: RoleEnum) -> FamilyMember:
    member = require_family_member(db, family_id, user_id)
    if role_rank(member.role) < role_rank(required):
        raise Forbidden(f"{required.value} role required")
    return member


def require_family_admin(db: Session, family_id: int, user_id: int) -> FamilyMember:
    return require_family_role(db, family_id, user_id, RoleEnum.admin)


def require_family_owner(db: Session, family_id: int, user_id: int) -> FamilyMember:
    return require_family_role(db, family_id, user_id, RoleEnum.owner)


def authorize(db: Session, user_id: int, family_id: int, required: RoleEnum) -> bool:
    member = get_member(db, family_id, user_id)
    return member is not None and role_rank(member.role) >= role_rank(required)


def owner_count(db: Session, family_id: int) -> int:
    return db.execute(
        select(func.count(FamilyMember.id)).where(
            FamilyMember.family_id == family_id,
            FamilyMember.role == RoleEnum.owner,
        )
    ).scalar_one()
