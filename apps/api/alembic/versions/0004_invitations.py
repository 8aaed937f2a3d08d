"""family invitations

Revision ID: 0004_invitations
Revises: 0003_budgets_and_alerts
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0004_invitations"
down_revision = "0003_budgets_and_alerts"
branch_labels = None
depends_on = None


role_enum = postgresql.ENUM("owner", "admin", "member", name="roleenum", create_type=False)
invitation_status_enum = postgresql.ENUM(
    "pending",
    "accepted",
    "declined",
    "expired",
    "revoked",
    name="invitationstatusenum",
    create_type=False,
)


def upgrade() -> None:
    bind = op.get_bind()
    invitation_status_enum.create(bind, checkfirst=True)

    op.create_table(
        "invitations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id"), nullable=False),
        sa.Column("inviter_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("invitee_email", sa.String(length=255), nullable=False),
        sa.Column("invitee_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("role", role_enum, nullable=False, server_default="member"),
        sa.Column("token", sa.String(length=100), nullable=False, unique=True),
        sa.Column("status", invitation_status_enum, nullable=False, server_default="pending"),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("responded_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_invitations_family_email_status",
        "invitations",
        ["family_id", "invitee_email", "status"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_invitations_family_email_status", table_name="invitations")
    op.drop_table("invitations")
    invitation_status_enum.drop(op.get_bind(), checkfirst=True)
