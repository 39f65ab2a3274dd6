from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from stokstak.db_migrations import to_sqlalchemy_url


config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def _database_url() -> str:
    """`flask db upgrade` pins the URL from DB_PATH; a bare `alembic` run reads the environment."""
    configured = config.get_main_option("sqlalchemy.url")
    if config.attributes.get("configured_by_app"):
        return configured
    return to_sqlalchemy_url(os.environ.get("DATABASE_URL") or os.environ.get("DB_PATH") or configured)


def run_offline(url: str) -> None:
    context.configure(url=url, target_metadata=None, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_online(url: str) -> None:
    engine = create_engine(url, poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, target_metadata=None)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_offline(_database_url())
else:
    run_online(_database_url())
