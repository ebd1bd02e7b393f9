from __future__ import annotations

from enum import IntEnum
from typing import Any, Mapping

from .errors import ModelConfigurationError
from .query import DBQuery


class DbState(IntEnum):
    CURRENT = 0
    NEW = 1
    UPDATED = 2
    DELETED = 3


class BaseModel:
    """Base class for every entity kept in the model cache.

    Concrete models map one table row to attributes and build the statements
    needed to fetch, insert, update and delete it. They never touch the
    database themselves; ``ModelRepository`` executes the statements.
    """

    CACHE_CONFIG: str = ""
    CACHE_PRIORITY: int = 1

    def __init__(self) -> None:
        self._db_state = DbState.CURRENT
        self._revision = 0
        self._write_in_flight = False
        self._failed_attempts = 0

    def __repr__(self) -> str:
        return f"<{type(self).__name__} state={self._db_state.name}>"

    @property
    def db_state(self) -> DbState:
        return self._db_state

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def write_in_flight(self) -> bool:
        return self._write_in_flight

    @property
    def failed_attempts(self) -> int:
        return self._failed_attempts

    @property
    def is_dirty(self) -> bool:
        return self._db_state != DbState.CURRENT

    def mark_dirty(self, new_state: DbState = DbState.UPDATED) -> None:
        # NEW and DELETED win over later updates until the write-back lands.
        self._revision += 1
        if self._db_state == DbState.CURRENT:
            self._db_state = DbState(new_state)

    def delete(self) -> None:
        self._revision += 1
        self._db_state = DbState.DELETED

    # -- statement builders ------------------------------------------------

    @classmethod
    def build_fetch_query(cls, query: Mapping[str, Any]) -> DBQuery:
        raise ModelConfigurationError(f"{cls.__name__} does not define build_fetch_query()")

    def build_insert_query(self) -> DBQuery:
        raise ModelConfigurationError(f"{type(self).__name__} does not define build_insert_query()")

    def build_update_query(self) -> DBQuery:
        raise ModelConfigurationError(f"{type(self).__name__} does not define build_update_query()")

    def build_delete_query(self) -> DBQuery:
        raise ModelConfigurationError(f"{type(self).__name__} does not define build_delete_query()")

    # -- row mapping -------------------------------------------------------

    def from_db_row(self, row: Mapping[str, Any]) -> None:
        raise ModelConfigurationError(f"{type(self).__name__} does not define from_db_row()")

    def create_new_from_query(self, query: Mapping[str, Any]) -> None:
        raise ModelConfigurationError(f"{type(self).__name__} does not define create_new_from_query()")

    def set_id_after_insert(self, insert_id: Any) -> None:
        return None

    def identity(self) -> tuple[Any, ...] | None:
        """Primary key of the row this model maps to, or None while it has none."""
        return None

    # -- hooks used by the repository -------------------------------------

    def _force_state(self, state: DbState) -> None:
        self._db_state = DbState(state)

    def _begin_write(self) -> int:
        self._write_in_flight = True
        return self._revision

    def _finish_write(self, revision: int, applied: DbState) -> None:
        self._write_in_flight = False
        self._failed_attempts = 0
        if applied == DbState.DELETED or self._revision == revision:
            self._db_state = DbState.CURRENT
            return
        # Changed again while the statement was running.
        if self._db_state != DbState.DELETED:
            self._db_state = DbState.UPDATED

    def _fail_write(self) -> int:
        self._write_in_flight = False
        self._failed_attempts += 1
        return self._failed_attempts


def as_id(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    text = str(value).strip()
    return text or None


def as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in {"", "0", "false", "no", "off"}
    return bool(value)
