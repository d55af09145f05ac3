from __future__ import annotations

import logging

from alembic import context
from sqlalchemy import create_engine, pool

from db.base import Base
from db.config import get_engine_settings, normalize_postgres_url
from db.models import (  # noqa: F401  imports trigger Base.metadata registration
    ActionTarget,
    DataRow,
    Entity,
    EntityRelationship,
    EntityType,
    Organization,
    RelationshipType,
    Upload,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s")

target_metadata = Base.metadata


def _migration_url() -> str:
    """
    ``-x db_url=...`` targets a one-off database; otherwise the app's own URL is used.
    """

    override = context.get_x_argument(as_dictionary=True).get("db_url")
    if not override:
        return get_engine_settings().url
    url = normalize_postgres_url(override.strip())
    if not url.startswith("postgresql"):
        raise RuntimeError("Migrations run against PostgreSQL only.")
    return url


def run_migrations_offline() -> None:
    context.configure(
        url=_migration_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(_migration_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
