"""Two-tier TTL cache for API responses.

A bounded in-memory layer sits in front of a persistent key/value layer so
entries survive a restart. Entries belonging to this store are namespaced
with ``KEY_PREFIX``; nothing else in the persistent layer is touched.
"""
from __future__ import annotations

import hashlib
import json
import re
import time
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from src.domain.entities.cache_entry import CacheEntry
from src.infrastructure.cache.persistent_storage import KeyValueStorage

KEY_PREFIX = "api_cache_"
DEFAULT_TTL = 5 * 60  # seconds
MAX_MEMORY_ITEMS = 100
MAX_PERSISTED_CHARS = 100_000


@dataclass(frozen=True)
class CacheStats:
    memory_size: int
    persistent_size: int


def make_key(endpoint: str, params: dict[str, Any] | None = None) -> str:
    """Derive the storage key for an endpoint and its request parameters.

    The endpoint stays readable inside the key so ``invalidate_pattern`` can
    target it; parameters are folded into a digest of their canonical JSON.
    """
    slug = re.sub(r"[^A-Za-z0-9]+", "_", endpoint).strip("_")
    raw = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str) if params else ""
    digest = hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]
    return f"{KEY_PREFIX}{slug}_{digest}"


class CacheStore:
    def __init__(
        self,
        storage: KeyValueStorage | None = None,
        *,
        default_ttl: float = DEFAULT_TTL,
        max_memory_items: int = MAX_MEMORY_ITEMS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_memory_items < 1:
            raise ValueError("max_memory_items must be >= 1")
        self.storage = storage
        self.default_ttl = default_ttl
        self.max_memory_items = max_memory_items
        self._clock = clock
        # dicts keep insertion order, which is the eviction order
        self._memory: dict[str, CacheEntry] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        """Bumped by every invalidation; a result fetched under an older generation may be stale."""
        return self._generation

    # -- memory layer -------------------------------------------------------

    def _remember(self, entry: CacheEntry) -> None:
        if entry.key in self._memory:
            del self._memory[entry.key]
        elif len(self._memory) >= self.max_memory_items:
            oldest = next(iter(self._memory))
            del self._memory[oldest]
            logger.debug(f"[Cache] Evicted oldest memory entry {oldest}")
        self._memory[entry.key] = entry

    # -- persistent layer ---------------------------------------------------

    def _persist(self, entry: CacheEntry) -> None:
        if self.storage is None:
            return
        try:
            serialized = json.dumps(entry.to_record())
        except (TypeError, ValueError) as exc:
            logger.debug(f"[Cache] {entry.key} is not JSON serializable, memory only: {exc}")
            return
        if len(serialized) >= MAX_PERSISTED_CHARS:
            return
        try:
            self.storage.set_item(entry.key, serialized)
        except OSError as exc:
            logger.warning(f"[Cache] Failed to store {entry.key} in persistent layer: {exc}")

    def _load(self, key: str) -> CacheEntry | None:
        if self.storage is None:
            return None
        try:
            raw = self.storage.get_item(key)
        except UnicodeDecodeError as exc:
            logger.warning(f"[Cache] Dropping undecodable persistent entry {key}: {exc}")
            self._forget_persisted(key)
            return None
        except OSError as exc:
            logger.warning(f"[Cache] Failed to read {key} from persistent layer: {exc}")
            return None
        if raw is None:
            return None
        try:
            return CacheEntry.from_record(key, json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning(f"[Cache] Dropping corrupt persistent entry {key}: {exc}")
            self._forget_persisted(key)
            return None

    def _forget_persisted(self, key: str) -> None:
        if self.storage is None:
            return
        try:
            self.storage.remove_item(key)
        except OSError as exc:
            logger.warning(f"[Cache] Failed to remove {key} from persistent layer: {exc}")

    def _persisted_keys(self) -> list[str]:
        if self.storage is None:
            return []
        try:
            return [key for key in self.storage.keys() if key.startswith(KEY_PREFIX)]
        except OSError as exc:
            logger.warning(f"[Cache] Failed to list persistent layer: {exc}")
            return []

    # -- public API ---------------------------------------------------------

    def set(
        self,
        endpoint: str,
        value: Any,
        params: dict[str, Any] | None = None,
        ttl: float | None = None,
    ) -> None:
        entry = CacheEntry(
            key=make_key(endpoint, params),
            value=value,
            timestamp=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )
        self._remember(entry)
        self._persist(entry)

    def get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any | None:
        key = make_key(endpoint, params)
        now = self._clock()

        entry = self._memory.get(key)
        if entry is not None:
            if entry.is_valid(now):
                return entry.value
            del self._memory[key]
            self._forget_persisted(key)
            return None

        entry = self._load(key)
        if entry is None:
            return None
        if not entry.is_valid(now):
            self._forget_persisted(key)
            return None
        self._remember(entry)
        return entry.value

    def invalidate(self, endpoint: str, params: dict[str, Any] | None = None) -> None:
        key = make_key(endpoint, params)
        self._generation += 1
        self._memory.pop(key, None)
        self._forget_persisted(key)

    def invalidate_pattern(self, pattern: str) -> int:
        """Remove every entry whose key contains ``pattern``; returns how many keys went."""
        self._generation += 1
        removed = {key for key in self._memory if pattern in key}
        for key in removed:
            del self._memory[key]
        for key in self._persisted_keys():
            if pattern in key:
                self._forget_persisted(key)
                removed.add(key)
        if removed:
            logger.debug(f"[Cache] Invalidated {len(removed)} entries matching '{pattern}'")
        return len(removed)

    def clear(self) -> None:
        self._generation += 1
        self._memory.clear()
        for key in self._persisted_keys():
            self._forget_persisted(key)

    def get_stats(self) -> CacheStats:
        return CacheStats(memory_size=len(self._memory), persistent_size=len(self._persisted_keys()))
