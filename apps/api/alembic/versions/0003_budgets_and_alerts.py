"""budgets and budget alert keys

Revision ID: 0003_budgets_and_alerts
Revises: 0002_ledger_mirrors
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0003_budgets_and_alerts"
down_revision = "0002_ledger_mirrors"
branch_labels = None
depends_on = None


budget_period_enum = postgresql.ENUM(
    "daily", "weekly", "monthly", "yearly", "custom", name="budgetperiodenum", create_type=False
)
alert_kind_enum = postgresql.ENUM("near_limit", "over_budget", name="alertkindenum", create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    budget_period_enum.create(bind, checkfirst=True)
    alert_kind_enum.create(bind, checkfirst=True)

    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id"), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("amount", sa.Numeric(19, 4), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("period", budget_period_enum, nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("alert_threshold", sa.Integer(), nullable=False, server_default="80"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_budget_amount_positive"),
        sa.CheckConstraint("alert_threshold >= 1 AND alert_threshold <= 100", name="ck_budget_alert_threshold"),
        sa.CheckConstraint(
            "(user_id IS NULL AND family_id IS NOT NULL) OR (user_id IS NOT NULL AND family_id IS NULL)",
            name="ck_budget_single_scope",
        ),
    )
    op.create_index("ix_budgets_family_active", "budgets", ["family_id", "is_active"], unique=False)
    op.create_index("ix_budgets_user_active", "budgets", ["user_id", "is_active"], unique=False)

    op.create_table(
        "budget_alerts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("budget_id", sa.Integer(), sa.ForeignKey("budgets.id"), nullable=False),
        sa.Column("window_start", sa.Date(), nullable=False),
        sa.Column("kind", alert_kind_enum, nullable=False),
        sa.Column("spent_percentage", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("budget_id", "window_start", "kind", name="uq_budget_alerts_budget_window_kind"),
    )


def downgrade() -> None:
    op.drop_table("budget_alerts")
    op.drop_index("ix_budgets_user_active", table_name="budgets")
    op.drop_index("ix_budgets_family_active", table_name="budgets")
    op.drop_table("budgets")
    bind = op.get_bind()
    alert_kind_enum.drop(bind, checkfirst=True)
    budget_period_enum.drop(bind, checkfirst=True)
