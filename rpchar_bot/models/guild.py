from __future__ import annotations

from typing import Any, Mapping

from ..cache.base import BaseModel, DbState, as_id
from ..cache.query import DBQuery


class Guild(BaseModel):
    CACHE_CONFIG = "guilds"
    CACHE_PRIORITY = 1

    RPCHAR_SETTING_CHANNEL = 1
    RPCHAR_SETTING_GUILD = 2

    def __init__(self) -> None:
        super().__init__()
        self.id: str | None = None
        self._rp_character_setting = self.RPCHAR_SETTING_CHANNEL
        self._main_prefix: str | None = None
        self._quick_prefix: str | None = None

    @classmethod
    def build_fetch_query(cls, query: Mapping[str, Any]) -> DBQuery:
        return DBQuery("SELECT * FROM guilds WHERE id = ?", (as_id(query["id"]),))

    def build_insert_query(self) -> DBQuery:
        return DBQuery(
            """
            INSERT INTO guilds (id, rpcharsetting, main_prefix, quick_prefix)
            VALUES (?, ?, ?, ?)
            """,
            (self.id, self._rp_character_setting, self._main_prefix, self._quick_prefix),
        )

    def build_update_query(self) -> DBQuery:
        return DBQuery(
            """
            UPDATE guilds
            SET rpcharsetting = ?,
                main_prefix = ?,
                quick_prefix = ?
            WHERE id = ?
            """,
            (self._rp_character_setting, self._main_prefix, self._quick_prefix, self.id),
        )

    def build_delete_query(self) -> DBQuery:
        return DBQuery("DELETE FROM guilds WHERE id = ?", (self.id,))

    def from_db_row(self, row: Mapping[str, Any]) -> None:
        self.id = as_id(row["id"])
        self._rp_character_setting = int(row.get("rpcharsetting") or self.RPCHAR_SETTING_CHANNEL)
        self._main_prefix = row.get("main_prefix")
        self._quick_prefix = row.get("quick_prefix")

    def create_new_from_query(self, query: Mapping[str, Any]) -> None:
        self.id = as_id(query["id"])
        self._rp_character_setting = self.RPCHAR_SETTING_CHANNEL

    def identity(self) -> tuple[Any, ...] | None:
        return (self.id,) if self.id is not None else None

    @property
    def rp_character_setting(self) -> int:
        return self._rp_character_setting

    @rp_character_setting.setter
    def rp_character_setting(self, value: int) -> None:
        if value not in (self.RPCHAR_SETTING_CHANNEL, self.RPCHAR_SETTING_GUILD):
            raise ValueError(f"Unknown character setting: {value!r}")
        self._rp_character_setting = int(value)
        self.mark_dirty(DbState.UPDATED)

    @property
    def main_prefix(self) -> str | None:
        return self._main_prefix

    @main_prefix.setter
    def main_prefix(self, value: str | None) -> None:
        self._main_prefix = value
        self.mark_dirty(DbState.UPDATED)

    @property
    def quick_prefix(self) -> str | None:
        return self._quick_prefix

    @quick_prefix.setter
    def quick_prefix(self, value: str | None) -> None:
        self._quick_prefix = value
        self.mark_dirty(DbState.UPDATED)
