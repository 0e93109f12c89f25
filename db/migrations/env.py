"""Alembic environment for the candidate engine.

Online runs reuse ``db.connection.get_engine()`` so migrations go through the
same driver validation and SQLite transaction handling as the workers.
"""
import asyncio
import logging
from logging.config import fileConfig

from alembic import context

from db.connection import dispose_engine, get_engine
from db.models import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL for the configured DATABASE_URL without connecting."""
    url = get_engine().url.render_as_string(hide_password=False)
    _configure(url=url, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection) -> None:
    # SQLite cannot ALTER most constraints in place
    _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = get_engine()
    logger.info("Migrating %s", engine.url.render_as_string(hide_password=True))
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync)
    finally:
        await dispose_engine()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
