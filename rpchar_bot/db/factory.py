from __future__ import annotations

from typing import TYPE_CHECKING

from .adapter import DbAdapter
from .sqlite import SqliteAdapter

if TYPE_CHECKING:
    from ..config import Settings


def build_db_adapter(settings: "Settings") -> DbAdapter:
    backend = settings.db_backend
    if backend == "sqlite":
        return SqliteAdapter(settings.sqlite_path)
    if backend == "postgres":
        if not settings.postgres_dsn:
            raise ValueError("POSTGRES_DSN is required when DB_BACKEND=postgres")

        from .postgres import PostgresAdapter

        return PostgresAdapter(settings.postgres_dsn)
    raise ValueError("DB_BACKEND must be 'sqlite' or 'postgres'")
