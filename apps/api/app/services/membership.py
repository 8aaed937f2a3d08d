from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import DuplicateMember, Forbidden, LastOwnerViolation, NotFound, ValidationFailed
from app.models.entities import Family, FamilyMember, RoleEnum, User
from app.services.access import (
    get_member,
    lock_family,
    owner_count,
    require_family_admin,
    require_family_member,
    require_family,
    require_family_owner,
    role_rank,
)
from app.services.purge import purge_family

logger = logging.getLogger(__name__)


def create_family(
    db: Session,
    creator: User,
    name: str,
    currency: str | None = None,
    description: str | None = None,
) -> Family:
    family = Family(
        name=name,
        description=description,
        currency=currency or creator.default_currency,
        created_by_user_id=creator.id,
    )
    # Creator becomes the owner in the same flush as the family itself.
    family.members.append(FamilyMember(user_id=creator.id, role=RoleEnum.owner))
    db.add(family)
    db.flush()
    logger.info("family %s created by user %s", family.id, creator.id)
    return family


def list_families(db: Session, user_id: int) -> list[tuple[Family, FamilyMember]]:
    rows = db.execute(
        select(Family, FamilyMember)
        .join(FamilyMember, FamilyMember.family_id == Family.id)
        .where(FamilyMember.user_id == user_id)
        .order_by(Family.id.asc())
    ).all()
    return [(family, member) for family, member in rows]


def list_members(db: Session, actor_id: int, family_id: int) -> list[FamilyMember]:
    family = require_family(db, family_id)
    require_family_member(db, family_id, actor_id)
    return list(family.members)


def add_member(db: Session, family_id: int, user_id: int, role: RoleEnum) -> FamilyMember:
    if get_member(db, family_id, user_id) is not None:
        raise DuplicateMember("user is already a member of this family")
    member = FamilyMember(family_id=family_id, user_id=user_id, role=RoleEnum(role))
    try:
        with db.begin_nested():
            db.add(member)
    except IntegrityError:
        raise DuplicateMember("user is already a member of this family") from None
    logger.info("user %s joined family %s as %s", user_id, family_id, member.role.value)
    return member


def _check_can_manage(actor: FamilyMember, target: FamilyMember, new_role: RoleEnum | None = None) -> None:
    if actor.role == RoleEnum.owner:
        return
    if role_rank(actor.role) < role_rank(RoleEnum.admin):
        raise Forbidden("admin role required")
    if role_rank(target.role) >= role_rank(actor.role):
        raise Forbidden("cannot manage a member with an equal or higher role")
    if new_role is not None and role_rank(new_role) > role_rank(actor.role):
        raise Forbidden("cannot grant a role above your own")


def _require_target(db: Session, family_id: int, user_id: int) -> FamilyMember:
    target = get_member(db, family_id, user_id)
    if target is None:
        raise NotFound("family member not found")
    return target


def change_role(
    db: Session,
    actor_id: int,
    family_id: int,
    target_user_id: int,
    new_role: RoleEnum,
) -> FamilyMember:
    new_role = RoleEnum(new_role)
    lock_family(db, family_id)
    actor = require_family_member(db, family_id, actor_id)
    target = _require_target(db, family_id, target_user_id)
    _check_can_manage(actor, target, new_role)

    if target.role == RoleEnum.owner and new_role != RoleEnum.owner and owner_count(db, family_id) <= 1:
        raise LastOwnerViolation("family must keep at least one owner")

    previous = target.role
    target.role = new_role
    db.flush()
    logger.info(
        "family %s: user %s changed role of user %s from %s to %s",
        family_id,
        actor_id,
        target_user_id,
        previous.value,
        new_role.value,
    )
    return target


def remove_member(db: Session, actor_id: int, family_id: int, target_user_id: int) -> None:
    lock_family(db, family_id)
    actor = require_family_member(db, family_id, actor_id)
    target = _require_target(db, family_id, target_user_id)
    if target.id != actor.id:
        _check_can_manage(actor, target)
    elif role_rank(actor.role) < role_rank(RoleEnum.admin):
        raise Forbidden("admin role required")

    if target.role == RoleEnum.owner and owner_count(db, family_id) <= 1:
        raise LastOwnerViolation("cannot remove the only owner of a family")

    db.delete(target)
    db.flush()
    logger.info("family %s: user %s removed user %s", family_id, actor_id, target_user_id)


def leave_family(db: Session, user_id: int, family_id: int) -> None:
    lock_family(db, family_id)
    member = require_family_member(db, family_id, user_id)
    if member.role == RoleEnum.owner and owner_count(db, family_id) <= 1:
        raise LastOwnerViolation("transfer ownership before leaving the family")
    db.delete(member)
    db.flush()
    logger.info("family %s: user %s left", family_id, user_id)


def transfer_ownership(db: Session, actor_id: int, family_id: int, target_user_id: int) -> FamilyMember:
    lock_family(db, family_id)
    actor = require_family_owner(db, family_id, actor_id)
    target = _require_target(db, family_id, target_user_id)
    if target.id == actor.id:
        raise ValidationFailed("cannot transfer ownership to yourself")

    target.role = RoleEnum.owner
    actor.role = RoleEnum.admin
    db.flush()
    logger.info("family %s: ownership transferred from user %s to user %s", family_id, actor_id, target_user_id)
    return target


def update_family(
    db: Session,
    actor_id: int,
    family_id: int,
    *,
    name: str,
    description: str | None,
    currency: str | None,
) -> Family:
    family = lock_family(db, family_id)
    require_family_admin(db, family_id, actor_id)
    family.name = name
    family.description = description
    if currency is not None:
        family.currency = currency
    db.flush()
    return family


def delete_family(db: Session, actor_id: int, family_id: int) -> None:
    family = lock_family(db, family_id)
    require_family_owner(db, family_id, actor_id)
    purge_family(db, family.id)
    logger.info("family %s deleted by user %s", family_id, actor_id)
