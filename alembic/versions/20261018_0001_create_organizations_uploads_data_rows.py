"""create organizations, uploads, data_rows

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
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
    ]


def upgrade() -> None:
    # ---------------------------------------------------------------------------
    # organizations
    # Tenant root. Every other table references it.
    # ---------------------------------------------------------------------------
    op.create_table(
        "organizations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "slug",
            sa.String(length=120),
            nullable=False,
            comment="URL-safe unique handle derived from the name",
        ),
        sa.Column("industry", sa.String(length=100), nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column(
            "currency",
            sa.String(length=3),
            nullable=False,
            comment="ISO 4217 code applied to currency properties",
        ),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            comment="Soft-disable a tenant without deletion",
        ),
        *_timestamps(),
        sa.UniqueConstraint("slug"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_organizations_is_active", "organizations", ["is_active"])

    # ---------------------------------------------------------------------------
    # uploads
    # FK → organizations.id ON DELETE CASCADE
    # ---------------------------------------------------------------------------
    op.create_table(
        "uploads",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "uploaded_by",
            postgresql.UUID(as_uuid=True),
            nullable=True,
            comment="Actor id supplied by the auth layer, if any",
        ),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column(
            "headers",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="Original header order",
        ),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column(
            "data_type",
            sa.String(length=32),
            nullable=False,
            comment="Revenue, Labor, Attendance, Inventory, Custom",
        ),
        sa.Column("row_count", sa.Integer(), nullable=True),
        sa.Column("skipped_row_count", sa.Integer(), nullable=True),
        sa.Column(
            "column_mapping",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="Header -> column role",
        ),
        sa.Column(
            "status",
            sa.String(length=32),
            nullable=False,
            comment="processing -> ready | failed",
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_uploads_org_id", "uploads", ["org_id"])
    op.create_index("ix_uploads_org_status", "uploads", ["org_id", "status"])

    # ---------------------------------------------------------------------------
    # data_rows
    # FK → organizations.id, uploads.id ON DELETE CASCADE
    # ---------------------------------------------------------------------------
    op.create_table(
        "data_rows",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("upload_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("data_type", sa.String(length=32), nullable=False),
        sa.Column(
            "row_number",
            sa.Integer(),
            nullable=False,
            comment="1-based position of the row in the upload (header excluded)",
        ),
        sa.Column(
            "data",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="Raw cells keyed by original header",
        ),
        sa.Column(
            "date",
            sa.Date(),
            nullable=True,
            comment="Parsed date-role value; NULL rows are excluded from aggregation",
        ),
        sa.Column("dimension_field", sa.String(length=255), nullable=False),
        sa.Column("dimension_value", sa.String(length=255), nullable=False),
        sa.Column("actual", sa.Float(), nullable=False),
        sa.Column("expected", sa.Float(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["upload_id"], ["uploads.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_data_rows_upload_id", "data_rows", ["upload_id"])
    op.create_index("ix_data_rows_org_date", "data_rows", ["org_id", "date"])
    op.create_index(
        "ix_data_rows_org_dimension",
        "data_rows",
        ["org_id", "dimension_field", "dimension_value"],
    )


def downgrade() -> None:
    op.drop_index("ix_data_rows_org_dimension", table_name="data_rows")
    op.drop_index("ix_data_rows_org_date", table_name="data_rows")
    op.drop_index("ix_data_rows_upload_id", table_name="data_rows")
    op.drop_table("data_rows")

    op.drop_index("ix_uploads_org_status", table_name="uploads")
    op.drop_index("ix_uploads_org_id", table_name="uploads")
    op.drop_table("uploads")

    op.drop_index("ix_organizations_is_active", table_name="organizations")
    op.drop_table("organizations")
