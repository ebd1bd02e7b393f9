from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Sequence

import aiosqlite

from .adapter import QueryResult, is_select
from .schema import SCHEMA_VERSION, SQLITE_SCHEMA

logger = logging.getLogger("rpchar_bot")


def _sqlite_busy_timeout_ms() -> int:
    raw = os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000").strip()
    try:
        timeout = int(raw)
    except ValueError:
        timeout = 5000
    return max(0, min(timeout, 60000))


@asynccontextmanager
async def _sqlite_connection(db_path: str | Path) -> AsyncIterator[aiosqlite.Connection]:
    async with aiosqlite.connect(db_path) as db:
        await db.execute("PRAGMA foreign_keys=ON")
        timeout_ms = _sqlite_busy_timeout_ms()
        if timeout_ms > 0:
            await db.execute(f"PRAGMA busy_timeout={timeout_ms}")
        yield db


class SqliteAdapter:
    """Runs cache statements against a SQLite file, one connection per statement."""

    backend_name = "sqlite"

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    async def init(self) -> None:
        async with _sqlite_connection(self.db_path) as db:
            await db.execute("PRAGMA journal_mode=WAL")
            async with db.execute("PRAGMA user_version") as cursor:
                row = await cursor.fetchone()
            version = int(row[0]) if row else 0
            if version > SCHEMA_VERSION:
                raise RuntimeError(
                    "SQLite schema version mismatch detected (database is newer than this bot build). "
                    f"Found user_version={version}, supported={SCHEMA_VERSION}."
                )
            await db.executescript(SQLITE_SCHEMA)
            if version != SCHEMA_VERSION:
                await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            await db.commit()
        logger.info("SQLite database ready at %s", self.db_path)

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        async with _sqlite_connection(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            if is_select(sql):
                async with db.execute(sql, tuple(params)) as cursor:
                    rows = await cursor.fetchall()
                return QueryResult(rows=[dict(row) for row in rows], affected_rows=len(rows))
            async with db.execute(sql, tuple(params)) as cursor:
                insert_id = cursor.lastrowid
                affected = cursor.rowcount
            await db.commit()
        return QueryResult(insert_id=insert_id, affected_rows=max(0, affected))

    async def ping(self) -> None:
        async with _sqlite_connection(self.db_path) as db:
            await db.execute("SELECT 1")

    async def close(self) -> None:
        return None
