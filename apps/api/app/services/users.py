from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFound
from app.models.entities import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def resolve_user(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == normalize_email(email))).scalar_one_or_none()


def require_user(db: Session, email: str) -> User:
    user = resolve_user(db, email)
    if user is None:
        raise NotFound("user not found")
    return user


def ensure_user(db: Session, email: str) -> User:
    user = resolve_user(db, email)
    if user is not None:
        return user
    user = User(
        email=normalize_email(email),
        full_name=normalize_email(email),
        default_currency=settings.default_currency,
    )
    db.add(user)
    db.flush()
    return user
