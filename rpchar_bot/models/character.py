from __future__ import annotations

import re
from typing import Any, Mapping

from ..cache.base import BaseModel, DbState, as_flag, as_id
from ..cache.errors import ModelConfigurationError
from ..cache.query import DBQuery

SHORTNAME_RE = re.compile(r"^[a-z0-9_\-]{1,16}$", re.IGNORECASE)


class Character(BaseModel):
    """A named persona owned by a user; ``id`` is assigned by the database on insert."""

    CACHE_CONFIG = "characters"
    CACHE_PRIORITY = 2

    def __init__(self) -> None:
        super().__init__()
        self.id: str | None = None
        self.user_id: str | None = None
        self._shortname: str | None = None
        self._name: str | None = None
        self._avatar: str | None = None
        self._default_character = False

    @classmethod
    def new(
        cls,
        user_id: str,
        shortname: str,
        name: str,
        *,
        avatar: str | None = None,
        default_character: bool = False,
    ) -> "Character":
        shortname = shortname.strip().lower()
        if not SHORTNAME_RE.match(shortname):
            raise ValueError(
                "Character shortname may only contain latin letters, digits, '_' and '-' (max 16 characters)"
            )
        name = " ".join(name.split())
        if not name:
            raise ValueError("Character name cannot be empty")
        character = cls()
        character.user_id = as_id(user_id)
        character._shortname = shortname
        character._name = name
        character._avatar = avatar
        character._default_character = bool(default_character)
        character._force_state(DbState.NEW)
        return character

    @classmethod
    def build_fetch_query(cls, query: Mapping[str, Any]) -> DBQuery:
        return DBQuery("SELECT * FROM characters WHERE user_id = ? ORDER BY id", (as_id(query["user_id"]),))

    def build_insert_query(self) -> DBQuery:
        return DBQuery(
            """
            INSERT INTO characters
                (user_id, character_shortname, character_name, character_avatar, default_character)
            VALUES (?, ?, ?, ?, ?)
            """,
            (self.user_id, self._shortname, self._name, self._avatar, 1 if self._default_character else 0),
        )

    def build_update_query(self) -> DBQuery:
        return DBQuery(
            """
            UPDATE characters
            SET character_shortname = ?,
                character_name = ?,
                character_avatar = ?,
                default_character = ?
            WHERE id = ?
            """,
            (self._shortname, self._name, self._avatar, 1 if self._default_character else 0, self._row_id()),
        )

    def build_delete_query(self) -> DBQuery:
        return DBQuery("DELETE FROM characters WHERE id = ?", (self._row_id(),))

    def from_db_row(self, row: Mapping[str, Any]) -> None:
        self.id = as_id(row["id"])
        self.user_id = as_id(row["user_id"])
        self._shortname = row.get("character_shortname")
        self._name = row.get("character_name")
        self._avatar = row.get("character_avatar")
        self._default_character = as_flag(row.get("default_character", 0))

    def create_new_from_query(self, query: Mapping[str, Any]) -> None:
        raise ModelConfigurationError(
            "Characters are not synthesized from a query; build them with Character.new() "
            "and fetch them with create_new=False"
        )

    def set_id_after_insert(self, insert_id: Any) -> None:
        self.id = as_id(insert_id)

    def _row_id(self) -> int | None:
        # The column is an integer key; asyncpg does not coerce "5" to int8.
        return int(self.id) if self.id is not None else None

    def identity(self) -> tuple[Any, ...] | None:
        return (self.id,) if self.id is not None else None

    @property
    def shortname(self) -> str | None:
        return self._shortname

    @shortname.setter
    def shortname(self, value: str) -> None:
        value = value.strip().lower()
        if not SHORTNAME_RE.match(value):
            raise ValueError(f"Invalid character shortname: {value!r}")
        self._shortname = value
        self.mark_dirty(DbState.UPDATED)

    @property
    def name(self) -> str | None:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = " ".join(value.split())
        self.mark_dirty(DbState.UPDATED)

    @property
    def avatar(self) -> str | None:
        return self._avatar

    @avatar.setter
    def avatar(self, value: str | None) -> None:
        self._avatar = value
        self.mark_dirty(DbState.UPDATED)

    @property
    def default_character(self) -> bool:
        return self._default_character

    @default_character.setter
    def default_character(self, value: bool) -> None:
        self._default_character = bool(value)
        self.mark_dirty(DbState.UPDATED)
