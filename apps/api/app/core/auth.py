from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.models.entities import User
from app.services.users import ensure_user


@dataclass(frozen=True)
class AuthContext:
    email: str


def get_auth_context(
    x_forwarded_user: str | None = Header(default=None, alias="X-Forwarded-User"),
    x_dev_user: str | None = Header(default=None, alias="X-Dev-User"),
) -> AuthContext | None:
    """
    Auth boundary.

    In prod, requests are expected to be behind Traefik Forward Auth, which injects
    X-Forwarded-User (email). In dev/tests (AUTH_MODE=none) the caller may pick an
    identity with X-Dev-User, falling back to DEV_USER_EMAIL.
    """
    if settings.auth_mode == "none":
        email = x_dev_user or settings.dev_user_email
        return AuthContext(email=email.strip().lower()) if email else None

    email = x_forwarded_user
    if not email:
        raise HTTPException(status_code=401, detail="missing auth header (X-Forwarded-User)")
    return AuthContext(email=email.strip().lower())


def require_auth(ctx: AuthContext | None = Depends(get_auth_context)) -> AuthContext:
    if ctx is None:
        raise HTTPException(status_code=401, detail="authentication required")
    return ctx


def get_current_user(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
) -> User:
    # Forward-auth users are provisioned on first sight.
    user = ensure_user(db, ctx.email)
    db.commit()
    return user
