from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Sequence

import asyncpg

from .adapter import QueryResult, is_insert, is_select
from .schema import POSTGRES_SCHEMA, SCHEMA_VERSION

logger = logging.getLogger("rpchar_bot")

_PLACEHOLDER_RE = re.compile(r"\?")
_ROW_COUNT_RE = re.compile(r"(\d+)\s*$")


def to_postgres_placeholders(sql: str) -> str:
    """Rewrite ``?`` placeholders to asyncpg's ``$1``, ``$2`` ... form."""
    counter = 0

    def _next(_: re.Match[str]) -> str:
        nonlocal counter
        counter += 1
        return f"${counter}"

    return _PLACEHOLDER_RE.sub(_next, sql)


def _affected_rows(status: str) -> int:
    match = _ROW_COUNT_RE.search(status or "")
    return int(match.group(1)) if match else 0


class PostgresAdapter:
    backend_name = "postgres"

    def __init__(self, dsn: str, *, min_size: int = 1, max_size: int = 6, command_timeout: float = 30.0) -> None:
        self.dsn = dsn.strip()
        if not self.dsn:
            raise ValueError("POSTGRES_DSN cannot be empty")
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self._pool: asyncpg.Pool | None = None
        self._init_lock = asyncio.Lock()

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(
                dsn=self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout,
            )
        return self._pool

    async def init(self) -> None:
        async with self._init_lock:
            pool = await self._ensure_pool()
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(POSTGRES_SCHEMA)
                    version = await conn.fetchval("SELECT version FROM schema_meta WHERE id = 1")
                    if version is not None and int(version) > SCHEMA_VERSION:
                        raise RuntimeError(
                            f"Postgres schema version {version} is newer than supported {SCHEMA_VERSION}. "
                            "Upgrade the bot before starting."
                        )
                    await conn.execute(
                        """
                        INSERT INTO schema_meta (id, version) VALUES (1, $1)
                        ON CONFLICT (id) DO UPDATE SET version = EXCLUDED.version
                        """,
                        SCHEMA_VERSION,
                    )
        logger.info("Postgres database ready")

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        pool = await self._ensure_pool()
        statement = to_postgres_placeholders(sql)
        async with pool.acquire() as conn:
            if is_select(statement):
                records = await conn.fetch(statement, *params)
                return QueryResult(rows=[dict(record) for record in records], affected_rows=len(records))
            if is_insert(statement) and "RETURNING" not in statement.upper():
                record = await conn.fetchrow(f"{statement.rstrip().rstrip(';')} RETURNING *", *params)
                insert_id = None
                if record is not None and "id" in record.keys():
                    insert_id = record["id"]
                return QueryResult(insert_id=insert_id, affected_rows=1 if record is not None else 0)
            status = await conn.execute(statement, *params)
        return QueryResult(affected_rows=_affected_rows(status))

    async def ping(self) -> None:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            await conn.execute("SELECT 1")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
