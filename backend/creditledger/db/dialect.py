"""Dialect-aware statement helpers.

Production runs on PostgreSQL; repository tests run on SQLite. Both support
``INSERT ... ON CONFLICT`` but through different insert constructs.
"""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_name(db: AsyncSession) -> str:
    """Name of the dialect behind the session (``postgresql``, ``sqlite``, ...)."""
    return db.get_bind().dialect.name


def conflict_insert(db: AsyncSession, model: Any) -> Any:
    """Return an insert construct that supports ``on_conflict_do_*`` for this session."""
    if dialect_name(db) == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)


def supports_row_locks(db: AsyncSession) -> bool:
    """Whether ``SELECT ... FOR UPDATE`` and advisory locks are available."""
    return dialect_name(db) == "postgresql"
