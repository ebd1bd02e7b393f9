from __future__ import annotations

import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from rpchar_bot.cache.base import DbState  # noqa: E402
from rpchar_bot.cache.group import CacheGroup  # noqa: E402
from rpchar_bot.cache.model_cache import ModelCache  # noqa: E402
from rpchar_bot.cache.query import normalize_query, query_key, query_matches  # noqa: E402
from rpchar_bot.models import User  # noqa: E402


def _user(user_id: str) -> User:
    user = User()
    user.from_db_row({"id": user_id, "ooc_prefix": None})
    return user


def test_query_key_ignores_field_order_and_value_types() -> None:
    assert query_key({"user_id": 1, "channel_id": "5"}) == query_key({"channel_id": 5, "user_id": "1"})
    assert query_key({"id": "1"}) != query_key({"id": "2"})
    assert normalize_query("42") == {"id": "42"}


def test_query_matches_requires_every_partial_pair() -> None:
    key = query_key({"user_id": 1, "channel_id": 5})

    assert query_matches(key, {"user_id": "1"})
    assert query_matches(key, {"channel_id": 5, "user_id": 1})
    assert not query_matches(key, {"channel_id": 6})
    assert not query_matches(key, {"guild_id": 5})


def test_group_membership_is_by_identity() -> None:
    first = _user("1")
    twin = _user("1")
    group = CacheGroup({"id": "1"}, [first, first, "not a model"])  # type: ignore[list-item]

    assert len(group) == 1
    assert first in group
    assert twin not in group

    group.add_models([twin])
    assert len(group) == 2
    assert not group.delete(first)
    assert group.delete(twin)


def test_cache_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ModelCache(0)


def test_lookup_promotes_and_overflow_evicts_the_tail() -> None:
    cache = ModelCache(2, name="users")
    user_a, user_b, user_c = _user("a"), _user("b"), _user("c")

    assert cache.add_models_to_cache({"id": "a"}, [user_a]) == []
    assert cache.add_models_to_cache({"id": "b"}, [user_b]) == []
    assert cache.get_models_by_query({"id": "a"}) == [user_a]

    user_b.ooc_prefix = "!"
    evicted = cache.add_models_to_cache({"id": "c"}, [user_c])

    assert evicted == [user_b]
    assert cache.query_keys() == [query_key({"id": "c"}), query_key({"id": "a"})]
    assert cache.get_models_by_query({"id": "b"}) is None
    assert cache.evicted_pending == 1
    assert cache.pending_evicted() == [user_b]
    assert cache.evictions == 1


def test_clean_evicted_groups_are_simply_dropped() -> None:
    cache = ModelCache(1)
    cache.add_models_to_cache({"id": "a"}, [_user("a")])

    assert cache.add_models_to_cache({"id": "b"}, [_user("b")]) == []
    assert cache.evicted_pending == 0
    assert cache.evictions == 1
    assert len(cache) == 1


def test_adding_to_existing_group_merges_without_eviction() -> None:
    cache = ModelCache(1)
    user_a, other = _user("a"), _user("a2")
    cache.add_models_to_cache({"id": "a"}, [user_a])

    assert cache.add_models_to_cache({"id": "a"}, [other, user_a]) == []
    assert cache.get_models_by_query({"id": "a"}) == [user_a, other]
    assert cache.add_models_to_cache({"id": "x"}, []) == []
    assert len(cache) == 1


def test_group_of_deleted_models_reads_as_miss_but_stays_queued() -> None:
    cache = ModelCache(5, priority=4)
    user = _user("1")
    cache.add_models_to_cache({"id": "1"}, [user])
    user.delete()

    assert cache.get_models_by_query({"id": "1"}) is None
    assert cache.peek({"id": "1"}) == [user]

    updates = cache.collect_required_updates([])
    assert [(update.model, update.priority) for update in updates] == [(user, 4)]

    cache.delete(user)
    assert len(cache) == 0


def test_collect_skips_clean_and_in_flight_models_and_dedupes() -> None:
    cache = ModelCache(5)
    clean, dirty, busy = _user("1"), _user("2"), _user("3")
    dirty.ooc_prefix = "x"
    busy.ooc_prefix = "y"
    busy._begin_write()
    cache.add_models_to_cache({"id": "1"}, [clean])
    cache.add_models_to_cache({"id": "2"}, [dirty])
    cache.add_models_to_cache({"all": "1"}, [clean, dirty, busy])

    updates = cache.collect_required_updates([])

    assert [update.model for update in updates] == [dirty]


def test_uncache_keeps_unsaved_members_queued() -> None:
    cache = ModelCache(5)
    saved, unsaved = _user("1"), _user("1")
    unsaved._force_state(DbState.NEW)
    cache.add_models_to_cache({"user_id": 1, "channel_id": 5}, [saved])
    cache.add_models_to_cache({"user_id": 1, "channel_id": 6}, [unsaved])
    cache.add_models_to_cache({"user_id": 2, "channel_id": 5}, [_user("2")])

    assert cache.uncache({"user_id": 1}) == 2
    assert cache.query_keys() == [query_key({"user_id": 2, "channel_id": 5})]
    assert cache.evicted_pending == 1
    assert [update.model for update in cache.collect_required_updates([])] == [unsaved]

    unsaved._finish_write(unsaved._begin_write(), DbState.NEW)
    assert cache.collect_required_updates([]) == []
    assert cache.evicted_pending == 0
