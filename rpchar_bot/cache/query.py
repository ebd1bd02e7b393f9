from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

QueryKey = tuple[tuple[str, str], ...]


@dataclass(frozen=True, slots=True)
class DBQuery:
    sql: str
    parameters: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.parameters, tuple):
            object.__setattr__(self, "parameters", tuple(self.parameters))


def _key_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def normalize_query(query: Mapping[str, Any] | str) -> dict[str, Any]:
    if isinstance(query, str):
        return {"id": query}
    return dict(query)


def query_key(query: Mapping[str, Any]) -> QueryKey:
    # Field order does not matter; ids compare equal whether given as int or str.
    return tuple(sorted((str(key), _key_value(value)) for key, value in query.items()))


def query_matches(key: QueryKey, partial: Mapping[str, Any]) -> bool:
    fields = dict(key)
    for name, value in partial.items():
        name = str(name)
        if name not in fields:
            return False
        if fields[name] != _key_value(value):
            return False
    return True
