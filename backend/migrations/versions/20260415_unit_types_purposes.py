"""Unit types and purposes

Revision ID: 20260415_unit_types
Revises: 20260301_initial
Create Date: 2026-04-15
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20260415_unit_types"
down_revision = "20260301_initial"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "unit_types",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("title"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "purposes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("purposes", schema=None) as batch_op:
        batch_op.create_index("ix_purposes_title", ["title"], unique=False)


def downgrade():
    with op.batch_alter_table("purposes", schema=None) as batch_op:
        batch_op.drop_index("ix_purposes_title")
    op.drop_table("purposes")
    op.drop_table("unit_types")
