"""
Alembic environment for hlt
===========================

The hlt schema is two tables: ``kv_store`` (every user, check-in, group
and invite is a versioned JSON document in it) and ``admin_log`` (the
superadmin audit trail).  Entity shape changes live in the pydantic
models, so revisions here only track those two tables and their indexes.

``alembic upgrade head`` is the production path.  ``init_db`` (also
``python -m hlt.manage init-db``) only creates missing tables and is meant
for development and tests.

The URL comes from ``DATABASE_URL`` (``.env`` is honoured); the empty
``sqlalchemy.url`` in ``alembic.ini`` is only a placeholder.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

from alembic import context

load_dotenv()

config = context.config

database_url = os.getenv("DATABASE_URL")
if database_url:
    config.set_main_option("sqlalchemy.url", database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Only kv_store and admin_log are mapped; entities never get tables of their own.
from hlt.database.models import Base  # noqa: E402

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit the kv_store / admin_log DDL as SQL without connecting."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply revisions against DATABASE_URL (PostgreSQL in production, SQLite locally)."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            # kv_store.value is JSONB on PostgreSQL and JSON elsewhere; autogenerate
            # must notice when that variant changes.
            compare_type=True,
            # SQLite cannot ALTER most columns; batch mode rebuilds the table.
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
