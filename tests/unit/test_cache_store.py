"""
Tests for the two-tier TTL cache store.
"""
from __future__ import annotations

import json

import pytest

from src.infrastructure.cache.cache_store import KEY_PREFIX, CacheStore, make_key
from src.infrastructure.cache.persistent_storage import FileStorage, MemoryStorage, StorageQuotaError


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenStorage(MemoryStorage):
    """Persistent layer whose every operation fails."""

    def get_item(self, key):
        raise OSError("disk unavailable")

    def set_item(self, key, value):
        raise StorageQuotaError("quota exceeded")

    def remove_item(self, key):
        raise OSError("disk unavailable")

    def keys(self):
        raise OSError("disk unavailable")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def store(storage, clock) -> CacheStore:
    return CacheStore(storage, default_ttl=60, clock=clock)


def test_key_is_deterministic_and_namespaced():
    a = make_key("users/page", {"args": [1, 20, ""]})
    b = make_key("users/page", {"args": [1, 20, ""]})
    c = make_key("users/page", {"args": [2, 20, ""]})
    assert a == b
    assert a != c
    assert a.startswith(KEY_PREFIX)
    assert "users" in a


def test_key_ignores_param_ordering():
    assert make_key("e", {"a": 1, "b": 2}) == make_key("e", {"b": 2, "a": 1})


def test_set_then_get_returns_value(store):
    store.set("users/page", {"data": [1, 2]}, {"page": 1})
    assert store.get("users/page", {"page": 1}) == {"data": [1, 2]}


def test_missing_key_returns_none(store):
    assert store.get("users/page", {"page": 9}) is None


def test_entry_expires_after_ttl(store, clock, storage):
    store.set("users/page", "value", ttl=10)
    clock.advance(9.9)
    assert store.get("users/page") == "value"
    clock.advance(0.1)
    assert store.get("users/page") is None
    # expired entries are evicted from both layers
    assert store.get_stats().memory_size == 0
    assert list(storage.keys()) == []


def test_default_ttl_applies(store, clock):
    store.set("users/page", "value")
    clock.advance(59)
    assert store.get("users/page") == "value"
    clock.advance(1)
    assert store.get("users/page") is None


def test_memory_layer_is_bounded_fifo(clock):
    store = CacheStore(None, max_memory_items=3, clock=clock)
    for i in range(3):
        store.set(f"e{i}", i)
    # reading does not refresh the position of an entry
    assert store.get("e0") == 0

    store.set("e3", 3)
    assert store.get_stats().memory_size == 3
    assert store.get("e0") is None
    assert [store.get(f"e{i}") for i in (1, 2, 3)] == [1, 2, 3]


def test_each_insertion_past_capacity_evicts_exactly_one(clock):
    store = CacheStore(None, max_memory_items=2, clock=clock)
    for i in range(10):
        store.set(f"e{i}", i)
        assert store.get_stats().memory_size == min(i + 1, 2)
    assert store.get("e8") == 8
    assert store.get("e9") == 9
    assert store.get("e7") is None


def test_resetting_existing_key_does_not_evict(clock):
    store = CacheStore(None, max_memory_items=2, clock=clock)
    store.set("a", 1)
    store.set("b", 2)
    store.set("a", 10)
    assert store.get("a") == 10
    assert store.get("b") == 2


def test_persistent_hit_is_promoted_to_memory(storage, clock):
    CacheStore(storage, clock=clock).set("users/page", "persisted", {"page": 1})
    fresh = CacheStore(storage, clock=clock)
    assert fresh.get_stats().memory_size == 0
    assert fresh.get("users/page", {"page": 1}) == "persisted"
    assert fresh.get_stats().memory_size == 1


def test_expired_persistent_entry_is_removed(storage, clock):
    CacheStore(storage, clock=clock).set("users/page", "old", ttl=5)
    clock.advance(5)
    fresh = CacheStore(storage, clock=clock)
    assert fresh.get("users/page") is None
    assert list(storage.keys()) == []


def test_corrupt_persistent_entry_is_evicted_not_returned(storage, clock):
    key = make_key("users/page")
    storage.set_item(key, "{not json")
    store = CacheStore(storage, clock=clock)
    assert store.get("users/page") is None
    assert storage.get_item(key) is None


def test_record_missing_fields_counts_as_corrupt(storage, clock):
    key = make_key("users/page")
    storage.set_item(key, json.dumps({"data": 1}))
    assert CacheStore(storage, clock=clock).get("users/page") is None
    assert storage.get_item(key) is None


def test_large_values_stay_in_memory_only(store, storage):
    store.set("users/all", "x" * 100_000)
    assert store.get("users/all") == "x" * 100_000
    assert list(storage.keys()) == []


def test_unserializable_values_stay_in_memory_only(store, storage):
    value = object()
    store.set("users/page", value)
    assert store.get("users/page") is value
    assert list(storage.keys()) == []


def test_persistent_failures_are_swallowed(clock):
    store = CacheStore(BrokenStorage(), clock=clock)
    store.set("users/page", "value")
    assert store.get("users/page") == "value"
    store.invalidate("users/page")
    assert store.get("users/page") is None
    store.set("users/page", "again")
    assert store.invalidate_pattern("users") == 1
    store.clear()
    assert store.get_stats().persistent_size == 0


def test_invalidate_removes_exactly_one_key(store, storage):
    store.set("users/page", 1, {"page": 1})
    store.set("users/page", 2, {"page": 2})
    store.invalidate("users/page", {"page": 1})
    assert store.get("users/page", {"page": 1}) is None
    assert store.get("users/page", {"page": 2}) == 2
    assert len(list(storage.keys())) == 1


def test_invalidate_pattern_covers_both_layers(storage, clock):
    store = CacheStore(storage, max_memory_items=1, clock=clock)
    store.set("users/page", 1, {"page": 1})
    store.set("users/page", 2, {"page": 2})  # pushes page 1 out of memory
    store.set("settings", 3)
    assert store.invalidate_pattern("users") == 2
    assert store.get("users/page", {"page": 1}) is None
    assert store.get("users/page", {"page": 2}) is None
    assert store.get("settings") == 3


def test_clear_leaves_foreign_keys_alone(store, storage):
    storage.set_item("theme", "dark")
    store.set("users/page", 1)
    store.set("users/one", 2)
    store.clear()
    assert store.get_stats().memory_size == 0
    assert store.get_stats().persistent_size == 0
    assert storage.get_item("theme") == "dark"


def test_stats_count_only_own_entries(store, storage):
    storage.set_item("unrelated", "x")
    store.set("users/page", 1)
    stats = store.get_stats()
    assert stats.memory_size == 1
    assert stats.persistent_size == 1


def test_file_storage_roundtrip_and_quota(tmp_path, clock):
    storage = FileStorage(tmp_path / "cache", quota_bytes=400)
    store = CacheStore(storage, clock=clock)
    store.set("users/page", {"name": "Ada"}, {"page": 1})
    assert CacheStore(storage, clock=clock).get("users/page", {"page": 1}) == {"name": "Ada"}

    # over quota: kept in memory, not persisted
    store.set("users/all", "y" * 1000)
    assert store.get("users/all") == "y" * 1000
    assert store.get_stats().persistent_size == 1


def test_file_storage_handles_arbitrary_keys(tmp_path):
    storage = FileStorage(tmp_path)
    storage.set_item("a/b c:d", "v")
    assert storage.get_item("a/b c:d") == "v"
    assert list(storage.keys()) == ["a/b c:d"]
    storage.remove_item("a/b c:d")
    storage.remove_item("a/b c:d")
    assert storage.get_item("a/b c:d") is None


def test_undecodable_persistent_file_is_evicted_not_raised(tmp_path, clock):
    storage = FileStorage(tmp_path)
    key = make_key("users/page")
    (tmp_path / f"{key}.json").write_bytes(b"\xff\xfe garbage")

    store = CacheStore(storage, clock=clock)
    assert store.get("users/page") is None
    assert list(storage.keys()) == []


def test_every_invalidation_advances_generation(store):
    start = store.generation
    store.invalidate("users/page")
    store.invalidate_pattern("users")
    store.clear()
    assert store.generation == start + 3

    store.set("users/page", 1)
    store.get("users/page")
    assert store.generation == start + 3
