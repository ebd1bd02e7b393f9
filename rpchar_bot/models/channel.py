from __future__ import annotations

from typing import Any, Mapping

from ..cache.base import BaseModel, DbState, as_flag, as_id
from ..cache.query import DBQuery


class Channel(BaseModel):
    """A channel registered for character relaying.

    ``webhook`` holds the live webhook object handed over by the gateway
    layer; only ``webhook_id`` is persisted.
    """

    CACHE_CONFIG = "channels"
    CACHE_PRIORITY = 1

    def __init__(self) -> None:
        super().__init__()
        self.id: str | None = None
        self.guild_id: str | None = None
        self._webhook_id: str | None = None
        self._allow_ooc = True
        self.webhook: Any = None

    @classmethod
    def build_fetch_query(cls, query: Mapping[str, Any]) -> DBQuery:
        return DBQuery("SELECT * FROM channels WHERE id = ?", (as_id(query["id"]),))

    def build_insert_query(self) -> DBQuery:
        return DBQuery(
            """
            INSERT INTO channels (id, guild_id, webhook_id, allow_ooc)
            VALUES (?, ?, ?, ?)
            """,
            (self.id, self.guild_id, self._webhook_id, 1 if self._allow_ooc else 0),
        )

    def build_update_query(self) -> DBQuery:
        return DBQuery(
            """
            UPDATE channels
            SET webhook_id = ?,
                allow_ooc = ?
            WHERE id = ?
            """,
            (self._webhook_id, 1 if self._allow_ooc else 0, self.id),
        )

    def build_delete_query(self) -> DBQuery:
        return DBQuery("DELETE FROM channels WHERE id = ?", (self.id,))

    def from_db_row(self, row: Mapping[str, Any]) -> None:
        self.id = as_id(row["id"])
        self.guild_id = as_id(row.get("guild_id"))
        self._webhook_id = as_id(row.get("webhook_id"))
        self._allow_ooc = as_flag(row.get("allow_ooc", 1))

    def create_new_from_query(self, query: Mapping[str, Any]) -> None:
        self.id = as_id(query["id"])
        self.guild_id = as_id(query.get("guild_id", query.get("server_id")))
        self._webhook_id = None
        self._allow_ooc = True

    def identity(self) -> tuple[Any, ...] | None:
        return (self.id,) if self.id is not None else None

    @property
    def webhook_id(self) -> str | None:
        return self._webhook_id

    @webhook_id.setter
    def webhook_id(self, value: str | None) -> None:
        self._webhook_id = as_id(value)
        self.mark_dirty(DbState.UPDATED)

    @property
    def allow_ooc(self) -> bool:
        return self._allow_ooc

    @allow_ooc.setter
    def allow_ooc(self, value: bool) -> None:
        self._allow_ooc = bool(value)
        self.mark_dirty(DbState.UPDATED)
