"""spaces

Revision ID: 0001_spaces
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_spaces"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "spaces",
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("environment", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=True),
        sa.Column("decommissioned", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("decommission_date", sa.DateTime(timezone=False), nullable=True),
        sa.Column("present_in_inventory", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.PrimaryKeyConstraint("name", "environment"),
    )
    # Presence updates filter on name alone.
    op.create_index("ix_spaces_name", "spaces", ["name"])


def downgrade() -> None:
    op.drop_index("ix_spaces_name", table_name="spaces")
    op.drop_table("spaces")
