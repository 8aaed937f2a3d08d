"""initial schema: users, families, members

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


role_enum = postgresql.ENUM("owner", "admin", "member", name="roleenum", create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    role_enum.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("default_currency", sa.String(length=3), nullable=False, server_default="VND"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "families",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="VND"),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "family_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role", role_enum, nullable=False),
        sa.Column("joined_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("family_id", "user_id", name="uq_family_members_family_user"),
    )
    op.create_index("ix_family_members_user", "family_members", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_family_members_user", table_name="family_members")
    op.drop_table("family_members")
    op.drop_table("families")
    op.drop_table("users")
    role_enum.drop(op.get_bind(), checkfirst=True)
