from __future__ import annotations

import logging
from typing import Any, Iterator, Mapping

from .base import BaseModel, DbState
from .group import CacheGroup
from .query import QueryKey, query_key, query_matches
from .update import UpdateModel

logger = logging.getLogger("rpchar_bot")


class ModelCache:
    """Bounded, most-recently-used-first list of cache groups for one model type.

    Groups are promoted to the front whenever they are looked up or extended.
    When a new group pushes the list past ``size`` the tail group is evicted;
    its unsaved members are remembered until a write-back has stored them.
    """

    def __init__(self, size: int, priority: int = 1, name: str = "") -> None:
        if size < 1:
            raise ValueError("Cache size must be >= 1")
        self._size = int(size)
        self._priority = int(priority)
        self._name = name
        self._groups: list[CacheGroup] = []
        self._evicted: list[BaseModel] = []
        self._evictions = 0

    @property
    def size(self) -> int:
        return self._size

    @property
    def priority(self) -> int:
        return self._priority

    @property
    def name(self) -> str:
        return self._name

    @property
    def evicted_pending(self) -> int:
        return len(self._evicted)

    @property
    def evictions(self) -> int:
        """Number of groups dropped because the cache was full."""
        return self._evictions

    def pending_evicted(self) -> list[BaseModel]:
        """Models of dropped groups still waiting for their write-back."""
        return list(self._evicted)

    def __len__(self) -> int:
        return len(self._groups)

    def query_keys(self) -> list[QueryKey]:
        return [group.query_key for group in self._groups]

    def _find_group(self, key: QueryKey) -> CacheGroup | None:
        for index, group in enumerate(self._groups):
            if group.query_key == key:
                if index:
                    del self._groups[index]
                    self._groups.insert(0, group)
                return group
        return None

    def peek(self, query: Mapping[str, Any]) -> list[BaseModel]:
        """Members of the query's group, deleted ones included, without promoting it."""
        key = query_key(query)
        for group in self._groups:
            if group.query_key == key:
                return group.models
        return []

    def get_models_by_query(self, query: Mapping[str, Any]) -> list[BaseModel] | None:
        group = self._find_group(query_key(query))
        if group is None:
            return None
        live = [model for model in group.models if model.db_state != DbState.DELETED]
        # A group whose members are all pending deletion reads as a miss.
        return live or None

    def add_models_to_cache(self, query: Mapping[str, Any], models: list[BaseModel]) -> list[BaseModel]:
        """Register ``models`` under ``query``; returns dirty models evicted by this call."""
        if not models:
            return []

        group = self._find_group(query_key(query))
        if group is not None:
            group.add_models(models)
            return []

        self._groups.insert(0, CacheGroup(query, models))
        evicted: list[BaseModel] = []
        while len(self._groups) > self._size:
            dropped = self._groups.pop()
            self._evictions += 1
            dirty = [model for model in dropped.models if model.is_dirty]
            logger.info(
                "Cache %s full (%s groups), evicted query %s with %s unsaved model(s)",
                self._name or "?",
                self._size,
                dict(dropped.query_key),
                len(dirty),
            )
            for model in dirty:
                if not any(pending is model for pending in self._evicted):
                    self._evicted.append(model)
                    evicted.append(model)
        return evicted

    def collect_required_updates(self, queued_updates: list[UpdateModel]) -> list[UpdateModel]:
        seen: set[int] = set()
        for model in self._iter_models():
            if id(model) in seen:
                continue
            seen.add(id(model))
            if model.db_state == DbState.CURRENT or model.write_in_flight:
                continue
            queued_updates.append(UpdateModel(model, self._priority))
        self._evicted = [model for model in self._evicted if model.is_dirty]
        return queued_updates

    def _iter_models(self) -> Iterator[BaseModel]:
        for group in self._groups:
            yield from group.models
        yield from self._evicted

    def delete(self, model: BaseModel) -> None:
        self._groups = [group for group in self._groups if not group.delete(model)]
        self._evicted = [pending for pending in self._evicted if pending is not model]

    def uncache(self, sub_query: Mapping[str, Any]) -> int:
        """Forget every group whose query contains all pairs of ``sub_query``.

        Unsaved members of forgotten groups stay queued for the next sweep.
        """
        kept: list[CacheGroup] = []
        removed = 0
        for group in self._groups:
            if not query_matches(group.query_key, sub_query):
                kept.append(group)
                continue
            removed += 1
            for model in group.models:
                if model.is_dirty and not any(pending is model for pending in self._evicted):
                    self._evicted.append(model)
        self._groups = kept
        return removed
