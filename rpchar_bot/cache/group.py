from __future__ import annotations

from typing import Any, Iterable, Mapping

from .base import BaseModel
from .query import QueryKey, query_key


class CacheGroup:
    """Models returned by one query, kept together under the query's key."""

    def __init__(self, query: Mapping[str, Any], models: Iterable[BaseModel] = ()) -> None:
        self._query = dict(query)
        self._query_key = query_key(self._query)
        self._models: list[BaseModel] = []
        self.add_models(models)

    @property
    def query(self) -> dict[str, Any]:
        return dict(self._query)

    @property
    def query_key(self) -> QueryKey:
        return self._query_key

    @property
    def models(self) -> list[BaseModel]:
        return list(self._models)

    def __len__(self) -> int:
        return len(self._models)

    def __contains__(self, model: object) -> bool:
        return any(cached is model for cached in self._models)

    def add_models(self, models: Iterable[BaseModel]) -> None:
        for model in models:
            if not isinstance(model, BaseModel):
                continue
            if model in self:
                continue
            self._models.append(model)

    def delete(self, model: BaseModel) -> bool:
        """Drop ``model`` (by identity). Returns True when the group is empty afterwards."""
        self._models = [cached for cached in self._models if cached is not model]
        return not self._models
