from __future__ import annotations

import asyncio
from collections import OrderedDict
from dataclasses import asdict, dataclass, replace
import json
import logging
import threading
import time
from typing import Any, Callable

from tube_lyrics.errors import CacheError
from tube_lyrics.search.similarity import normalize

from .sqlite import BlobStore

logger = logging.getLogger(__name__)

STORE_NAME = "lyrics_cache"
DEFAULT_TTL_MS = 30 * 24 * 60 * 60 * 1000
DEFAULT_MAX_SIZE = 50


def cache_key(query: str) -> str:
    return normalize(query)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    synced_text: str
    provider_name: str
    track_name: str
    artist_name: str
    timestamp_ms: int
    plain_text: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, key: str, data: dict[str, Any]) -> "CacheEntry":
        return cls(
            key=key,
            synced_text=str(data.get("synced_text") or ""),
            provider_name=str(data["provider_name"]),
            track_name=str(data.get("track_name") or ""),
            artist_name=str(data.get("artist_name") or ""),
            timestamp_ms=int(data["timestamp_ms"]),
            plain_text=data.get("plain_text"),
        )


class ResultCache:
    """
    Resolved lyrics keyed by normalized search query.

    - entries expire `ttl_ms` after they were written
    - at most `max_size` entries; least recently used go first (hits refresh recency)
    - the whole map is persisted as one JSON blob; with `flush_delay_s` > 0 and a
      running event loop, writes are batched, otherwise written immediately
    - an unreadable blob means an empty cache, never an error
    """

    def __init__(
        self,
        store: BlobStore | None = None,
        *,
        ttl_ms: int = DEFAULT_TTL_MS,
        max_size: int = DEFAULT_MAX_SIZE,
        flush_delay_s: float = 0.0,
        clock_ms: Callable[[], int] = _now_ms,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.store = store
        self.ttl_ms = ttl_ms
        self.max_size = max_size
        self.flush_delay_s = flush_delay_s
        self._clock_ms = clock_ms
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.RLock()
        self._version = 0
        self._flushed_version = 0
        self._flush_handle: asyncio.TimerHandle | None = None
        self._flush_loop: asyncio.AbstractEventLoop | None = None
        self._load()

    def now_ms(self) -> int:
        return self._clock_ms()

    def _load(self) -> None:
        if self.store is None:
            return
        try:
            blob = self.store.read(STORE_NAME)
            if not blob:
                return
            data = json.loads(blob)
            if not isinstance(data, dict):
                raise ValueError("cache blob is not an object")
            # stored in recency order, oldest first
            entries = [CacheEntry.from_dict(k, v) for k, v in data.items()]
        except (CacheError, ValueError, TypeError, KeyError) as e:
            logger.warning("Lyrics cache unreadable, starting empty: %s", e)
            return

        now = self.now_ms()
        for entry in entries:
            if self._is_fresh(entry, now):
                self._entries[entry.key] = entry
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)
        logger.debug("Loaded %d cached lyrics", len(self._entries))

    def _is_fresh(self, entry: CacheEntry, now: int) -> bool:
        return now - entry.timestamp_ms < self.ttl_ms

    def _purge_expired(self, now: int) -> int:
        stale = [k for k, e in self._entries.items() if not self._is_fresh(e, now)]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def get(self, query: str) -> CacheEntry | None:
        key = cache_key(query)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not self._is_fresh(entry, self.now_ms()):
                del self._entries[key]
                self._mark_dirty()
                return None
            self._entries.move_to_end(key)
            self._mark_dirty()
            return entry

    def set(self, query: str, entry: CacheEntry) -> CacheEntry:
        key = cache_key(query)
        if entry.key != key:
            entry = replace(entry, key=key)
        with self._lock:
            self._purge_expired(self.now_ms())
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted cached lyrics for %r", evicted)
            self._entries[key] = entry
            self._mark_dirty()
        return entry

    def put(
        self,
        query: str,
        *,
        synced_text: str,
        provider_name: str,
        track_name: str = "",
        artist_name: str = "",
        plain_text: str | None = None,
    ) -> CacheEntry:
        entry = CacheEntry(
            key=cache_key(query),
            synced_text=synced_text,
            provider_name=provider_name,
            track_name=track_name,
            artist_name=artist_name,
            timestamp_ms=self.now_ms(),
            plain_text=plain_text,
        )
        return self.set(query, entry)

    def delete(self, query: str) -> bool:
        with self._lock:
            removed = self._entries.pop(cache_key(query), None) is not None
            if removed:
                self._mark_dirty()
            return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._mark_dirty()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries.keys())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, query: object) -> bool:
        if not isinstance(query, str):
            return False
        entry = self._entries.get(cache_key(query))
        return entry is not None and self._is_fresh(entry, self.now_ms())

    @property
    def dirty(self) -> bool:
        return self._version != self._flushed_version

    def _mark_dirty(self) -> None:
        self._version += 1
        self._schedule_flush()

    def _schedule_flush(self) -> None:
        if self.store is None:
            self._flushed_version = self._version
            return
        if self.flush_delay_s <= 0:
            self.flush()
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return
        if self._flush_handle is not None and self._flush_loop is not loop:
            # scheduled on another loop, usually one asyncio.run already closed
            self._flush_handle.cancel()
            self._flush_handle = None
        if self._flush_handle is None:
            self._flush_handle = loop.call_later(self.flush_delay_s, self._debounced_flush)
            self._flush_loop = loop

    def _debounced_flush(self) -> None:
        self._flush_handle = None
        self.flush()

    def flush(self) -> bool:
        """Write the current map; returns False if the store rejected it."""
        with self._lock:
            if self.store is None or not self.dirty:
                return True
            version = self._version
            blob = json.dumps(
                {k: e.to_dict() for k, e in self._entries.items()},
                ensure_ascii=False,
            )
        try:
            self.store.write(STORE_NAME, blob)
        except CacheError as e:
            logger.error("Failed to persist lyrics cache: %s", e)
            return False
        with self._lock:
            # later mutations keep the cache dirty
            self._flushed_version = max(self._flushed_version, version)
        return True

    def close(self) -> None:
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None
        self.flush()
