from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from controle_pedidos.db_migrations import to_sqlalchemy_url


config = context.config

if config.config_file_name is not None:
    # Keep application loggers alive when migrations run inside the app process.
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = None


def _database_url() -> str:
    configured_url = config.get_main_option("sqlalchemy.url") or ""
    if config.attributes.get("from_app"):
        return to_sqlalchemy_url(configured_url)
    # Plain `alembic` runs follow the same environment the app reads.
    return to_sqlalchemy_url(os.environ.get("DATABASE_URL") or configured_url)


def run_migrations_offline() -> None:
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = _database_url()

    connectable = engine_from_config(
        section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
        future=True,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
