from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Mapping, TypeVar

from .base import BaseModel, DbState
from .errors import ModelConfigurationError, UnknownModelError
from .model_cache import ModelCache
from .query import QueryKey, normalize_query, query_key
from .update import UpdateModel

if TYPE_CHECKING:
    from ..config import Settings
    from ..db.adapter import DbAdapter

logger = logging.getLogger("rpchar_bot")

ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_CACHE_SIZE = 100
DEFAULT_CACHE_PRIORITY = 1
DEFAULT_FLUSH_INTERVAL_SECONDS = 15.0

# Config names of the models scoped to a user, cleared by the admin "userclear" signal.
USER_SCOPED_CACHES = ("characters", "guild_users", "channel_users", "thread_users")


@dataclass(slots=True)
class WriteBackStats:
    sweeps: int = 0
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    evicted_unsaved: int = 0
    fetches: int = 0
    cache_hits: int = 0


class ModelRepository:
    """Process-wide owner of one ``ModelCache`` per model type.

    Fetches go through the cache first and fall back to the database adapter.
    Changes to cached models are written back later by a periodic sweep, or
    immediately when their group gets evicted.
    """

    def __init__(
        self,
        db: "DbAdapter",
        *,
        model_types: Iterable[type[BaseModel]] = (),
        cache_sizes: Mapping[str, int] | None = None,
        default_cache_size: int = DEFAULT_CACHE_SIZE,
        default_priority: int = DEFAULT_CACHE_PRIORITY,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL_SECONDS,
        write_concurrency: int = 8,
        write_failure_alert_threshold: int = 5,
    ) -> None:
        if write_concurrency < 1:
            raise ValueError("write_concurrency must be >= 1")
        self.db = db
        self.cache_sizes = dict(cache_sizes or {})
        self.default_cache_size = int(default_cache_size)
        self.default_priority = int(default_priority)
        self.flush_interval = float(flush_interval)
        self.write_failure_alert_threshold = max(1, int(write_failure_alert_threshold))
        self.stats = WriteBackStats()

        self._model_types: dict[type[BaseModel], str] = {}
        self._caches: dict[type[BaseModel], ModelCache] = {}
        self._inflight: dict[tuple[type[BaseModel], QueryKey, bool], asyncio.Future[list[BaseModel]]] = {}
        self._write_semaphore = asyncio.Semaphore(write_concurrency)
        self._write_tasks: set[asyncio.Task[None]] = set()
        self._flush_task: asyncio.Task[None] | None = None

        for model_cls in model_types:
            self.register(model_cls)

    @classmethod
    def from_settings(
        cls,
        db: "DbAdapter",
        settings: "Settings",
        model_types: Iterable[type[BaseModel]] | None = None,
    ) -> "ModelRepository":
        if model_types is None:
            from ..models import MODEL_TYPES

            model_types = MODEL_TYPES
        return cls(
            db,
            model_types=model_types,
            cache_sizes=settings.cache_sizes,
            default_cache_size=settings.cache_default_size,
            default_priority=settings.cache_default_priority,
            flush_interval=settings.cache_flush_interval_seconds,
            write_concurrency=settings.cache_write_concurrency,
            write_failure_alert_threshold=settings.cache_write_failure_alert_threshold,
        )

    # -- registry ----------------------------------------------------------

    def register(self, model_cls: type[BaseModel]) -> type[BaseModel]:
        if not isinstance(model_cls, type) or not issubclass(model_cls, BaseModel) or model_cls is BaseModel:
            raise ModelConfigurationError(f"{model_cls!r} is not a concrete BaseModel subclass")
        name = model_cls.CACHE_CONFIG or model_cls.__name__.lower()
        for known_cls, known_name in self._model_types.items():
            if known_name == name and known_cls is not model_cls:
                raise ModelConfigurationError(
                    f"Cache name '{name}' is used by both {known_cls.__name__} and {model_cls.__name__}"
                )
        self._model_types[model_cls] = name
        return model_cls

    def is_registered(self, model_cls: type[BaseModel]) -> bool:
        return model_cls in self._model_types

    def model_type(self, cache_name: str) -> type[BaseModel] | None:
        for model_cls, name in self._model_types.items():
            if name == cache_name:
                return model_cls
        return None

    def cache_for(self, model_cls: type[BaseModel]) -> ModelCache | None:
        return self._caches.get(model_cls)

    @property
    def caches(self) -> dict[type[BaseModel], ModelCache]:
        return dict(self._caches)

    def _get_cache(self, model_cls: type[BaseModel]) -> ModelCache:
        cache = self._caches.get(model_cls)
        if cache is not None:
            return cache
        name = self._model_types.get(model_cls)
        if name is None:
            raise UnknownModelError(model_cls)

        first_cache = not self._caches
        size = self.cache_sizes.get(name, self.default_cache_size)
        priority = getattr(model_cls, "CACHE_PRIORITY", None)
        if priority is None:
            priority = self.default_priority
        cache = ModelCache(size, priority, name=name)
        self._caches[model_cls] = cache
        logger.debug("Created model cache %s (size=%s, priority=%s)", name, size, priority)
        if first_cache:
            self._arm_timer()
        return cache

    # -- fetching ----------------------------------------------------------

    async def fetch_by_query(
        self,
        model_cls: type[ModelT],
        query: Mapping[str, Any] | str,
        create_new: bool = True,
    ) -> list[ModelT]:
        query = normalize_query(query)
        cache = self._get_cache(model_cls)
        self.stats.fetches += 1

        cached = cache.get_models_by_query(query)
        if cached is not None:
            self.stats.cache_hits += 1
            return cached  # type: ignore[return-value]

        inflight_key = (model_cls, query_key(query), bool(create_new))
        pending = self._inflight.get(inflight_key)
        if pending is None:
            pending = asyncio.ensure_future(self._load(model_cls, cache, query, create_new))
            self._inflight[inflight_key] = pending
            pending.add_done_callback(lambda done: self._forget_inflight(inflight_key, done))
        # Shielded so one cancelled caller does not fail the others waiting on the same load.
        results = await asyncio.shield(pending)
        return list(results)  # type: ignore[arg-type]

    async def fetch_single_by_query(
        self,
        model_cls: type[ModelT],
        query: Mapping[str, Any] | str,
        create_new: bool = True,
    ) -> ModelT | None:
        results = await self.fetch_by_query(model_cls, query, create_new)
        if not results:
            return None
        return results[0]

    def _forget_inflight(
        self,
        inflight_key: tuple[type[BaseModel], QueryKey, bool],
        done: asyncio.Future[list[BaseModel]],
    ) -> None:
        if self._inflight.get(inflight_key) is done:
            del self._inflight[inflight_key]
        # Every waiter may have been cancelled; mark the error as retrieved.
        if not done.cancelled():
            done.exception()

    async def _load(
        self,
        model_cls: type[BaseModel],
        cache: ModelCache,
        query: dict[str, Any],
        create_new: bool,
    ) -> list[BaseModel]:
        statement = model_cls.build_fetch_query(query)
        result = await self.db.execute(statement.sql, statement.parameters)

        # Rows already cached under this query, or dropped from the cache with a
        # write-back still pending, keep their cached object. Rows whose DELETE
        # is still queued stay hidden.
        known: dict[tuple[Any, ...], BaseModel] = {}
        for model in (*cache.pending_evicted(), *cache.peek(query)):
            identity = model.identity()
            if identity is not None:
                known[identity] = model

        results: list[BaseModel] = []
        for row in result.rows:
            model = model_cls()
            model.from_db_row(row)
            identity = model.identity()
            existing = known.get(identity) if identity is not None else None
            if existing is None:
                results.append(model)
            elif existing.db_state != DbState.DELETED:
                results.append(existing)

        if not results and create_new:
            model = model_cls()
            model.create_new_from_query(query)
            model._force_state(DbState.NEW)
            identity = model.identity()
            existing = known.get(identity) if identity is not None else None
            if existing is None:
                results.append(model)
            elif existing.db_state != DbState.DELETED:
                results.append(existing)

        if results:
            self._handle_evicted(cache.add_models_to_cache(query, results))
        return results

    async def add_new(self, model: ModelT, query: Mapping[str, Any] | str) -> ModelT:
        """Cache a model built by the caller so the next sweep inserts it.

        The query's group is loaded first so the new model joins the rows the
        database already has instead of shadowing them.
        """
        query = normalize_query(query)
        await self.fetch_by_query(type(model), query, create_new=False)
        if model.db_state == DbState.CURRENT:
            model._force_state(DbState.NEW)
        cache = self._get_cache(type(model))
        self._handle_evicted(cache.add_models_to_cache(query, [model]))
        return model

    # -- invalidation ------------------------------------------------------

    def uncache_by_sub_query(self, model_cls: type[BaseModel], sub_query: Mapping[str, Any]) -> int:
        cache = self._caches.get(model_cls)
        if cache is None:
            return 0
        return cache.uncache(sub_query)

    def clear_user(self, user_id: str) -> int:
        removed = 0
        for name in USER_SCOPED_CACHES:
            model_cls = self.model_type(name)
            if model_cls is not None:
                removed += self.uncache_by_sub_query(model_cls, {"user_id": user_id})
        user_cls = self.model_type("users")
        if user_cls is not None:
            removed += self.uncache_by_sub_query(user_cls, {"id": user_id})
        logger.info("Cleared cached data for user %s (%s group(s))", user_id, removed)
        return removed

    # -- write-back --------------------------------------------------------

    def _handle_evicted(self, evicted: list[BaseModel]) -> None:
        self.stats.evicted_unsaved += len(evicted)
        for model in evicted:
            self.force_save_to_db(model)

    def force_save_to_db(self, model: BaseModel) -> asyncio.Task[None] | None:
        if not model.is_dirty or model.write_in_flight:
            return None
        return self._schedule_write(model)

    def _schedule_write(self, model: BaseModel) -> asyncio.Task[None]:
        model._write_in_flight = True
        task = asyncio.ensure_future(self._run_write(model))
        self._write_tasks.add(task)
        task.add_done_callback(self._write_tasks.discard)
        return task

    async def _run_write(self, model: BaseModel) -> None:
        try:
            async with self._write_semaphore:
                await self.apply_pending_operation(model)
        except Exception:
            logger.exception("Write-back of %r failed, keeping it queued", model)
        finally:
            model._write_in_flight = False

    async def apply_pending_operation(self, model: BaseModel) -> None:
        state = model.db_state
        if state == DbState.CURRENT:
            return
        if state == DbState.DELETED:
            statement = model.build_delete_query()
        elif state == DbState.UPDATED:
            statement = model.build_update_query()
        else:
            statement = model.build_insert_query()

        revision = model._begin_write()
        self.stats.attempted += 1
        try:
            result = await self.db.execute(statement.sql, statement.parameters)
        except asyncio.CancelledError:
            model._write_in_flight = False
            raise
        except Exception:
            attempts = model._fail_write()
            self.stats.failed += 1
            if attempts >= self.write_failure_alert_threshold:
                logger.error(
                    "Write-back of %r has failed %s times in a row (%s)",
                    model,
                    attempts,
                    state.name,
                )
            raise

        if state == DbState.NEW:
            model.set_id_after_insert(result.insert_id)
        elif state == DbState.DELETED:
            cache = self._caches.get(type(model))
            if cache is not None:
                cache.delete(model)
        model._finish_write(revision, state)
        self.stats.succeeded += 1

    def collect_required_updates(self) -> list[UpdateModel]:
        queued: list[UpdateModel] = []
        for cache in self._caches.values():
            cache.collect_required_updates(queued)
        # Lower priority values are written first; sorted() keeps collection order within a priority.
        return sorted(queued, key=lambda update: update.priority)

    def store_cached_objects(self) -> list[asyncio.Task[None]]:
        self.stats.sweeps += 1
        queued = self.collect_required_updates()
        if queued:
            logger.debug("Writing back %s cached model(s)", len(queued))
        return [self._schedule_write(update.model) for update in queued]

    async def flush(self) -> int:
        """Sweep now and wait for every outstanding write-back to settle."""
        tasks = self.store_cached_objects()
        while self._write_tasks:
            await asyncio.gather(*list(self._write_tasks), return_exceptions=True)
        return len(tasks)

    def failing_models(self) -> list[BaseModel]:
        failing: list[BaseModel] = []
        for cache in self._caches.values():
            for update in cache.collect_required_updates([]):
                if update.model.failed_attempts > 0:
                    failing.append(update.model)
        return failing

    # -- timer -------------------------------------------------------------

    def _arm_timer(self) -> None:
        if self._flush_task is not None or self.flush_interval <= 0:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._flush_task = loop.create_task(self._flush_loop(), name="model-cache-flush")
        logger.info("Model cache write-back started (interval: %ss)", self.flush_interval)

    def start(self) -> None:
        self._arm_timer()

    @property
    def running(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    async def _flush_loop(self) -> None:
        while True:
            await asyncio.sleep(self.flush_interval)
            try:
                self.store_cached_objects()
            except Exception:
                logger.exception("Model cache sweep failed")

    async def stop(self, flush: bool = True) -> None:
        task, self._flush_task = self._flush_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if flush:
            await self.flush()
