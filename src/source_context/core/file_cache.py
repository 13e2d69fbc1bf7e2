"""Bounded in-memory cache of repository file contents.

Entries are keyed by (repository, file path, revision) and bounded three
ways: total bytes, entry count and per-entry time-to-live. Eviction is
oldest-inserted first. The cache is a pure optimization, so no operation
raises: misses, expiry and eviction are ordinary control flow.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from threading import Lock
from typing import TYPE_CHECKING

import structlog

from source_context.models.cache import CacheEntry, CacheKey, CacheStats
from source_context.utils.logging import LogEventNames

if TYPE_CHECKING:
    from source_context.config.schema import CacheConfig

log = structlog.get_logger()

DEFAULT_MAX_BYTES = 50 * 1024 * 1024
DEFAULT_MAX_ENTRIES = 1000
DEFAULT_TTL_SECONDS = 30 * 60.0

# Files above this share of max_bytes are never cached
MAX_ENTRY_SHARE = 0.1
# Size-driven eviction frees space down to this share of max_bytes
EVICTION_TARGET_SHARE = 0.8


class BoundedFileCache:
    """File cache bounded by bytes, entry count and TTL.

    After every ``set`` the cache holds at most ``max_bytes`` bytes and at
    most ``max_entries`` entries. Expired entries are dropped lazily on read
    and eagerly by ``clear_expired``.

    Example:
        cache = BoundedFileCache(max_bytes=10 * 1024 * 1024, ttl=600)
        cache.set("owner/repo", "utils/helper.js", "abc123", content)
        content = cache.get("owner/repo", "utils/helper.js", "abc123")
        print(cache.stats().hit_rate)
    """

    def __init__(
        self,
        max_bytes: int = DEFAULT_MAX_BYTES,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            max_bytes: Upper bound on the UTF-8 size of all cached files
            max_entries: Upper bound on the number of cached files
            ttl: Seconds an entry stays readable after insertion
            clock: Source of timestamps in seconds (injectable for tests)
        """
        self._max_bytes = max_bytes
        self._max_entries = max_entries
        self._ttl = ttl
        self._clock = clock

        # Insertion-ordered: the first key is always the oldest entry
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._total_bytes = 0
        self._hits = 0
        self._misses = 0
        self._lock = Lock()

        log.info(
            LogEventNames.CACHE_INITIALIZED,
            max_bytes=max_bytes,
            max_entries=max_entries,
            ttl_seconds=ttl,
        )

    @classmethod
    def from_config(
        cls,
        config: CacheConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> BoundedFileCache:
        """Create a cache from the ``cache`` configuration section."""
        return cls(
            max_bytes=config.max_bytes,
            max_entries=config.max_entries,
            ttl=config.ttl_seconds,
            clock=clock,
        )

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def ttl(self) -> float:
        return self._ttl

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.inserted_at > self._ttl

    def _delete(self, key: CacheKey) -> CacheEntry | None:
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._total_bytes -= entry.size_bytes
        return entry

    def _evict_oldest(self) -> None:
        oldest_key = next(iter(self._entries))
        entry = self._delete(oldest_key)
        log.debug(
            LogEventNames.CACHE_EVICTED,
            path=oldest_key[1],
            size_bytes=entry.size_bytes if entry else 0,
        )

    def get(self, repository_id: str, file_path: str, revision: str) -> str | None:
        """Return cached content, counting a hit or a miss.

        An expired entry is deleted and counted as a miss.
        """
        key = (repository_id, file_path, revision)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                log.debug(LogEventNames.CACHE_MISS, path=file_path, revision=revision)
                return None

            if self._is_expired(entry, self._clock()):
                self._delete(key)
                self._misses += 1
                log.debug(LogEventNames.CACHE_EXPIRED, path=file_path, revision=revision)
                return None

            self._hits += 1
            log.debug(LogEventNames.CACHE_HIT, path=file_path, size_bytes=entry.size_bytes)
            return entry.content

    def set(self, repository_id: str, file_path: str, revision: str, content: str) -> None:
        """Cache ``content``, evicting the oldest entries to stay in bounds.

        Content larger than 10% of ``max_bytes`` is silently not cached.
        """
        key = (repository_id, file_path, revision)
        size_bytes = len(content.encode("utf-8"))

        if size_bytes > self._max_bytes * MAX_ENTRY_SHARE:
            log.debug(LogEventNames.CACHE_REJECTED, path=file_path, size_bytes=size_bytes)
            return

        with self._lock:
            self._delete(key)

            while self._entries and len(self._entries) >= self._max_entries:
                self._evict_oldest()

            if self._total_bytes + size_bytes > self._max_bytes:
                target = self._max_bytes * EVICTION_TARGET_SHARE
                while self._entries and self._total_bytes + size_bytes > target:
                    self._evict_oldest()

            self._entries[key] = CacheEntry(
                content=content,
                size_bytes=size_bytes,
                revision=revision,
                inserted_at=self._clock(),
            )
            self._total_bytes += size_bytes

        log.debug(LogEventNames.CACHE_STORED, path=file_path, size_bytes=size_bytes)

    def has(self, repository_id: str, file_path: str, revision: str) -> bool:
        """Check for a live entry without touching the hit/miss counters."""
        key = (repository_id, file_path, revision)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if self._is_expired(entry, self._clock()):
                self._delete(key)
                return False
            return True

    def remove(self, repository_id: str, file_path: str, revision: str) -> bool:
        """Delete one entry; True if it existed."""
        with self._lock:
            return self._delete((repository_id, file_path, revision)) is not None

    def clear(self) -> None:
        """Drop every entry. Hit/miss counters are kept."""
        with self._lock:
            entries_count = len(self._entries)
            self._entries.clear()
            self._total_bytes = 0
        log.info(LogEventNames.CACHE_CLEARED, entries_count=entries_count)

    def clear_expired(self) -> int:
        """Delete every expired entry and return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
            for key in expired:
                self._delete(key)

        if expired:
            log.debug(LogEventNames.CACHE_EXPIRED_CLEARED, cleared_count=len(expired))
        return len(expired)

    def stats(self) -> CacheStats:
        """Snapshot of size and hit/miss accounting."""
        with self._lock:
            requests = self._hits + self._misses
            return CacheStats(
                entries=len(self._entries),
                total_bytes=self._total_bytes,
                hits=self._hits,
                misses=self._misses,
                hit_rate=self._hits / requests if requests else 0.0,
                miss_rate=self._misses / requests if requests else 0.0,
            )

    def keys(self) -> list[CacheKey]:
        """Current keys, oldest first."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
