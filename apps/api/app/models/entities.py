from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SqlEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base


def utcnow() -> datetime:
    # Stored naive in UTC so comparisons behave the same on PostgreSQL and SQLite.
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RoleEnum(str, Enum):
    owner = "owner"
    admin = "admin"
    member = "member"


ROLE_RANK = {RoleEnum.owner: 3, RoleEnum.admin: 2, RoleEnum.member: 1}


class BudgetPeriodEnum(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"
    custom = "custom"


class AlertKindEnum(str, Enum):
    near_limit = "near_limit"
    over_budget = "over_budget"


class InvitationStatusEnum(str, Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"
    expired = "expired"
    revoked = "revoked"


TERMINAL_INVITATION_STATUSES = frozenset(
    {
        InvitationStatusEnum.accepted,
        InvitationStatusEnum.declined,
        InvitationStatusEnum.expired,
        InvitationStatusEnum.revoked,
    }
)


class TransactionTypeEnum(str, Enum):
    expense = "expense"
    income = "income"
    transfer = "transfer"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    default_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="VND")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Family(Base):
    __tablename__ = "families"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="VND")
    created_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    members: Mapped[list["FamilyMember"]] = relationship(
        back_populates="family",
        cascade="all, delete-orphan",
        order_by="FamilyMember.id",
    )
    invitations: Mapped[list["Invitation"]] = relationship(back_populates="family", cascade="all, delete-orphan")


class FamilyMember(Base):
    __tablename__ = "family_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    role: Mapped[RoleEnum] = mapped_column(SqlEnum(RoleEnum), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    family: Mapped[Family] = relationship(back_populates="members")
    user: Mapped[User] = relationship()

    __table_args__ = (UniqueConstraint("family_id", "user_id", name="uq_family_members_family_user"),)


class Category(Base):
    """Mirror of the ledger's category tree; read-only from this service."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_id: Mapped[int | None] = mapped_column(ForeignKey("categories.id"))
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))


class Transaction(Base):
    """Mirror of the ledger's transactions; read-only from this service."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    family_id: Mapped[int | None] = mapped_column(ForeignKey("families.id"))
    category_id: Mapped[int | None] = mapped_column(ForeignKey("categories.id"))
    type: Mapped[TransactionTypeEnum] = mapped_column(SqlEnum(TransactionTypeEnum), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)


class Budget(Base):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    family_id: Mapped[int | None] = mapped_column(ForeignKey("families.id"))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("categories.id"))
    amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    period: Mapped[BudgetPeriodEnum] = mapped_column(SqlEnum(BudgetPeriodEnum), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)
    alert_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=80)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_budget_amount_positive"),
        CheckConstraint("alert_threshold >= 1 AND alert_threshold <= 100", name="ck_budget_alert_threshold"),
        CheckConstraint(
            "(user_id IS NULL AND family_id IS NOT NULL) OR (user_id IS NOT NULL AND family_id IS NULL)",
            name="ck_budget_single_scope",
        ),
    )


class BudgetAlert(Base):
    __tablename__ = "budget_alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    budget_id: Mapped[int] = mapped_column(ForeignKey("budgets.id"), nullable=False)
    window_start: Mapped[date] = mapped_column(Date, nullable=False)
    kind: Mapped[AlertKindEnum] = mapped_column(SqlEnum(AlertKindEnum), nullable=False)
    spent_percentage: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("budget_id", "window_start", "kind", name="uq_budget_alerts_budget_window_kind"),
    )


class Invitation(Base):
    __tablename__ = "invitations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id"), nullable=False)
    inviter_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    invitee_email: Mapped[str] = mapped_column(String(255), nullable=False)
    invitee_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    role: Mapped[RoleEnum] = mapped_column(SqlEnum(RoleEnum), nullable=False, default=RoleEnum.member)
    token: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    status: Mapped[InvitationStatusEnum] = mapped_column(
        SqlEnum(InvitationStatusEnum), nullable=False, default=InvitationStatusEnum.pending
    )
    message: Mapped[str | None] = mapped_column(Text)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    family: Mapped[Family] = relationship(back_populates="invitations")
    inviter: Mapped[User] = relationship(foreign_keys=[inviter_user_id])


Index("ix_family_members_user", FamilyMember.user_id)
Index("ix_categories_parent", Category.parent_id)
Index(
    "ix_transactions_scope_date",
    Transaction.family_id,
    Transaction.user_id,
    Transaction.transaction_date,
)
Index("ix_budgets_family_active", Budget.family_id, Budget.is_active)
Index("ix_budgets_user_active", Budget.user_id, Budget.is_active)
Index("ix_invitations_family_email_status", Invitation.family_id, Invitation.invitee_email, Invitation.status)
