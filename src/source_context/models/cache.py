"""Data models for the file cache."""

from dataclasses import dataclass

# (repository_id, file_path, revision)
CacheKey = tuple[str, str, str]


@dataclass(frozen=True)
class CacheEntry:
    """A cached file body and its bookkeeping."""

    content: str
    size_bytes: int
    revision: str
    inserted_at: float


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache statistics."""

    entries: int
    total_bytes: int
    hits: int
    misses: int
    hit_rate: float
    miss_rate: float

    @property
    def requests(self) -> int:
        """Total number of lookups counted so far."""
        return self.hits + self.misses
