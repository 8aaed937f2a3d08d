from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import AuthContext, get_current_user, require_auth
from app.core.db import get_db
from app.models.entities import User
from app.services.invitations import count_pending
from app.services.membership import list_families

router = APIRouter(prefix="/v1", tags=["auth"])


@router.get("/me")
def get_me(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Returns the authenticated user, their family memberships and how many invitations
    are waiting for them.
    """
    return {
        "authenticated": True,
        "user_id": user.id,
        "email": user.email,
        "default_currency": user.default_currency,
        "pending_invitations": count_pending(db, user),
        "memberships": [
            {
                "family_id": family.id,
                "family_name": family.name,
                "member_id": member.id,
                "role": member.role.value,
            }
            for family, member in list_families(db, user.id)
        ],
    }


@router.post("/logout")
def logout(_: AuthContext = Depends(require_auth)):
    # With forward-auth, logout is handled by the IdP/proxy; the app doesn't hold a session.
    return {"ok": True}
