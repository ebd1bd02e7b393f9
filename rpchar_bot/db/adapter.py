from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence


@dataclass(slots=True)
class QueryResult:
    rows: list[dict[str, Any]] = field(default_factory=list)
    insert_id: Any = None
    affected_rows: int = 0


class DbAdapter(Protocol):
    backend_name: str

    async def init(self) -> None: ...

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult: ...

    async def close(self) -> None: ...


def is_select(sql: str) -> bool:
    head = sql.lstrip().split(None, 1)
    return bool(head) and head[0].upper() in {"SELECT", "WITH", "PRAGMA"}


def is_insert(sql: str) -> bool:
    head = sql.lstrip().split(None, 1)
    return bool(head) and head[0].upper() == "INSERT"
