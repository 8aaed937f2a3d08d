"""ledger mirror tables: categories, transactions

Revision ID: 0002_ledger_mirrors
Revises: 0001_initial
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0002_ledger_mirrors"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


transaction_type_enum = postgresql.ENUM(
    "expense", "income", "transfer", name="transactiontypeenum", create_type=False
)


def upgrade() -> None:
    bind = op.get_bind()
    transaction_type_enum.create(bind, checkfirst=True)

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
    )
    op.create_index("ix_categories_parent", "categories", ["parent_id"], unique=False)

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id"), nullable=True),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("type", transaction_type_enum, nullable=False),
        sa.Column("amount", sa.Numeric(19, 4), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
    )
    op.create_index(
        "ix_transactions_scope_date",
        "transactions",
        ["family_id", "user_id", "transaction_date"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_transactions_scope_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_categories_parent", table_name="categories")
    op.drop_table("categories")
    transaction_type_enum.drop(op.get_bind(), checkfirst=True)
