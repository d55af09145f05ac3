"""create entity_types, entities, relationship_types, entity_relationships

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 00:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ---------------------------------------------------------------------------
    # entity_types
    # ---------------------------------------------------------------------------
    op.create_table(
        "entity_types",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(length=64), nullable=False),
        sa.Column("color", sa.String(length=16), nullable=False),
        sa.Column("properties", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column(
            "source_column",
            sa.String(length=255),
            nullable=True,
            comment="Upload header this type was projected from, if any",
        ),
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
        sa.UniqueConstraint("org_id", "slug", name="uq_entity_types_org_slug"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_entity_types_org_id", "entity_types", ["org_id"])

    # ---------------------------------------------------------------------------
    # entities
    # FK → entity_types.id ON DELETE CASCADE; uploads.id ON DELETE SET NULL
    # ---------------------------------------------------------------------------
    op.create_table(
        "entities",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("entity_type_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("properties", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column(
            "source_upload_id",
            postgresql.UUID(as_uuid=True),
            nullable=True,
            comment="Provenance only; not an ownership relation",
        ),
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
        sa.ForeignKeyConstraint(["entity_type_id"], ["entity_types.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["source_upload_id"], ["uploads.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_entities_org_type", "entities", ["org_id", "entity_type_id"])
    op.create_index("ix_entities_org_type_name", "entities", ["org_id", "entity_type_id", "name"])

    # ---------------------------------------------------------------------------
    # relationship_types
    # ---------------------------------------------------------------------------
    op.create_table(
        "relationship_types",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("from_type_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("to_type_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["from_type_id"], ["entity_types.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["to_type_id"], ["entity_types.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "org_id",
            "name",
            "from_type_id",
            "to_type_id",
            name="uq_relationship_types_org_name_types",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # ---------------------------------------------------------------------------
    # entity_relationships
    # ---------------------------------------------------------------------------
    op.create_table(
        "entity_relationships",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("relationship_type_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("from_entity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("to_entity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("properties", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["relationship_type_id"],
            ["relationship_types.id"],
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(["from_entity_id"], ["entities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["to_entity_id"], ["entities.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "relationship_type_id",
            "from_entity_id",
            "to_entity_id",
            name="uq_entity_relationships_type_endpoints",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_entity_relationships_from", "entity_relationships", ["from_entity_id"])
    op.create_index("ix_entity_relationships_to", "entity_relationships", ["to_entity_id"])


def downgrade() -> None:
    op.drop_index("ix_entity_relationships_to", table_name="entity_relationships")
    op.drop_index("ix_entity_relationships_from", table_name="entity_relationships")
    op.drop_table("entity_relationships")
    op.drop_table("relationship_types")
    op.drop_index("ix_entities_org_type_name", table_name="entities")
    op.drop_index("ix_entities_org_type", table_name="entities")
    op.drop_table("entities")
    op.drop_index("ix_entity_types_org_id", table_name="entity_types")
    op.drop_table("entity_types")
