from __future__ import annotations

from typing import Any, Mapping

from ..cache.base import BaseModel, DbState, as_id
from ..cache.query import DBQuery


class User(BaseModel):
    CACHE_CONFIG = "users"
    CACHE_PRIORITY = 1

    def __init__(self) -> None:
        super().__init__()
        self.id: str | None = None
        self._ooc_prefix: str | None = None

    @classmethod
    def build_fetch_query(cls, query: Mapping[str, Any]) -> DBQuery:
        return DBQuery("SELECT * FROM users WHERE id = ?", (as_id(query["id"]),))

    def build_insert_query(self) -> DBQuery:
        return DBQuery("INSERT INTO users (id, ooc_prefix) VALUES (?, ?)", (self.id, self._ooc_prefix))

    def build_update_query(self) -> DBQuery:
        return DBQuery("UPDATE users SET ooc_prefix = ? WHERE id = ?", (self._ooc_prefix, self.id))

    def build_delete_query(self) -> DBQuery:
        return DBQuery("DELETE FROM users WHERE id = ?", (self.id,))

    def from_db_row(self, row: Mapping[str, Any]) -> None:
        self.id = as_id(row["id"])
        self._ooc_prefix = row.get("ooc_prefix")

    def create_new_from_query(self, query: Mapping[str, Any]) -> None:
        self.id = as_id(query["id"])
        self._ooc_prefix = None

    def identity(self) -> tuple[Any, ...] | None:
        return (self.id,) if self.id is not None else None

    @property
    def ooc_prefix(self) -> str | None:
        return self._ooc_prefix

    @ooc_prefix.setter
    def ooc_prefix(self, value: str | None) -> None:
        self._ooc_prefix = value
        self.mark_dirty(DbState.UPDATED)
