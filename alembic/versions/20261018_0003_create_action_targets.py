"""create action_targets

Revision ID: 20261018_0003
Revises: 20261018_0002
Create Date: 2026-10-18 00:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261018_0003"
down_revision = "20261018_0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "action_targets",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("dimension_field", sa.String(length=255), nullable=False),
        sa.Column("dimension_value", sa.String(length=255), nullable=False),
        sa.Column("target_type", sa.String(length=32), nullable=False),
        sa.Column(
            "target_pct",
            sa.Float(),
            nullable=False,
            comment="Share of the baseline gap to close, in percent",
        ),
        sa.Column(
            "target_value",
            sa.Float(),
            nullable=True,
            comment="Optional absolute gap level that also counts as reached",
        ),
        sa.Column("baseline_gap", sa.Float(), nullable=False),
        sa.Column("deadline", sa.Date(), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("current_gap", sa.Float(), nullable=True),
        sa.Column("current_pct_change", sa.Float(), nullable=True),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_action_targets_org_status", "action_targets", ["org_id", "status"])
    op.create_index(
        "ix_action_targets_org_dimension",
        "action_targets",
        ["org_id", "dimension_field", "dimension_value"],
    )


def downgrade() -> None:
    op.drop_index("ix_action_targets_org_dimension", table_name="action_targets")
    op.drop_index("ix_action_targets_org_status", table_name="action_targets")
    op.drop_table("action_targets")
