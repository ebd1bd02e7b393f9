from __future__ import annotations

from typing import Any, ClassVar, Mapping

from ..cache.base import BaseModel, DbState, as_id
from ..cache.query import DBQuery


class CharacterDefaultModel(BaseModel):
    """Remembers which character a user speaks as within one scope (guild, channel or thread)."""

    TABLE: ClassVar[str] = ""
    SCOPE_COLUMN: ClassVar[str] = ""
    CACHE_PRIORITY = 3

    def __init__(self) -> None:
        super().__init__()
        self.scope_id: str | None = None
        self.user_id: str | None = None
        self._character_id: str | None = None
        self._former_character_id: str | None = None

    @classmethod
    def build_fetch_query(cls, query: Mapping[str, Any]) -> DBQuery:
        return DBQuery(
            f"SELECT * FROM {cls.TABLE} WHERE user_id = ? AND {cls.SCOPE_COLUMN} = ?",
            (as_id(query["user_id"]), as_id(query[cls.SCOPE_COLUMN])),
        )

    def build_insert_query(self) -> DBQuery:
        return DBQuery(
            f"""
            INSERT INTO {self.TABLE}
                ({self.SCOPE_COLUMN}, user_id, character_id, former_character_id)
            VALUES (?, ?, ?, ?)
            """,
            (self.scope_id, self.user_id, self._character_id, self._former_character_id),
        )

    def build_update_query(self) -> DBQuery:
        return DBQuery(
            f"""
            UPDATE {self.TABLE}
            SET character_id = ?,
                former_character_id = ?
            WHERE {self.SCOPE_COLUMN} = ? AND user_id = ?
            """,
            (self._character_id, self._former_character_id, self.scope_id, self.user_id),
        )

    def build_delete_query(self) -> DBQuery:
        return DBQuery(
            f"DELETE FROM {self.TABLE} WHERE {self.SCOPE_COLUMN} = ? AND user_id = ?",
            (self.scope_id, self.user_id),
        )

    def from_db_row(self, row: Mapping[str, Any]) -> None:
        self.scope_id = as_id(row[self.SCOPE_COLUMN])
        self.user_id = as_id(row["user_id"])
        self._character_id = as_id(row.get("character_id"))
        self._former_character_id = as_id(row.get("former_character_id"))

    def create_new_from_query(self, query: Mapping[str, Any]) -> None:
        self.scope_id = as_id(query[self.SCOPE_COLUMN])
        self.user_id = as_id(query["user_id"])

    def identity(self) -> tuple[Any, ...] | None:
        if self.scope_id is None or self.user_id is None:
            return None
        return (self.scope_id, self.user_id)

    @property
    def default_character_id(self) -> str | None:
        return self._character_id

    @default_character_id.setter
    def default_character_id(self, value: str | None) -> None:
        self._character_id = as_id(value)
        self.mark_dirty(DbState.UPDATED)

    @property
    def former_character_id(self) -> str | None:
        return self._former_character_id

    @former_character_id.setter
    def former_character_id(self, value: str | None) -> None:
        self._former_character_id = as_id(value)
        self.mark_dirty(DbState.UPDATED)

    def switch_character(self, character_id: str | None) -> None:
        """Make ``character_id`` the default and keep the previous one for switching back."""
        self._former_character_id = self._character_id
        self._character_id = as_id(character_id)
        self.mark_dirty(DbState.UPDATED)


class GuildUser(CharacterDefaultModel):
    CACHE_CONFIG = "guild_users"
    TABLE = "guild_users"
    SCOPE_COLUMN = "guild_id"

    @property
    def guild_id(self) -> str | None:
        return self.scope_id


class ChannelUser(CharacterDefaultModel):
    CACHE_CONFIG = "channel_users"
    TABLE = "channel_users"
    SCOPE_COLUMN = "channel_id"

    @property
    def channel_id(self) -> str | None:
        return self.scope_id


class ThreadUser(CharacterDefaultModel):
    CACHE_CONFIG = "thread_users"
    TABLE = "thread_users"
    SCOPE_COLUMN = "thread_id"

    @property
    def thread_id(self) -> str | None:
        return self.scope_id
