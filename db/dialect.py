"""Dialect-aware INSERT so ON CONFLICT statements run on PostgreSQL and SQLite."""
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def upsert_insert(session: AsyncSession, model):
    """Return an INSERT construct exposing on_conflict_do_* for the bound dialect."""
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)
