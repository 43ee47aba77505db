"""In-process cache of assembled comment threads.

Threads are rebuilt on read, so a feed that renders the same item many times
keeps the last assembly for a short while. Entries are keyed per content item
and expire after a fixed TTL; writers call ``invalidate`` after creating or
deleting a comment.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass

from .tree import ThreadAssembly


@dataclass
class CacheEntry:
    """Cached assembly with the moment it was stored."""

    assembly: ThreadAssembly
    total: int
    stored_at: float


class CommentCache:
    """TTL cache keyed by ``(content_type, content_id)``."""

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @staticmethod
    def cache_key(content_type: str, content_id: str) -> str:
        return f"comments:{content_type}:{content_id}"

    def get(self, content_type: str, content_id: str) -> CacheEntry | None:
        """Return a live entry, evicting it if it has expired."""
        key = self.cache_key(content_type, content_id)
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() - entry.stored_at > self.ttl_seconds:
            del self._entries[key]
            return None

        return entry

    def set(
        self, content_type: str, content_id: str, assembly: ThreadAssembly
    ) -> CacheEntry:
        entry = CacheEntry(
            assembly=assembly,
            total=assembly.total,
            stored_at=self._clock(),
        )
        self._entries[self.cache_key(content_type, content_id)] = entry
        return entry

    def invalidate(self, content_type: str, content_id: str) -> None:
        self._entries.pop(self.cache_key(content_type, content_id), None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
