"""Directory listing cache

Listings are kept per canonical path so tab completion, wildcard expansion
and repeated ls calls don't each cost a round trip. A hit is returned no
matter how old it is; callers that care ask ``is_stale`` and refresh.
"""

import logging
import re
import time
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from .models import CacheEntry, Entry
from .paths import is_within

logger = logging.getLogger(__name__)

DEFAULT_TTL = 60.0
OVERLAY_TTL = 300.0
FEED_TTL = 10.0

# Feed output trees are written by running computations
_FEED_SEGMENT = re.compile(r"(^|/)(feeds|feed_\d+)(/|$)")


class FreshnessCache(Protocol):
    """Operations the VFS router relies on"""

    def get(self, path: str) -> Optional[CacheEntry]:
        ...

    def set(self, path: str, entries: List[Entry]) -> None:
        ...

    def mark_dirty(self, path: str) -> None:
        ...

    def invalidate(self, path: Optional[str] = None) -> None:
        ...


class ListCache:
    """In-memory listing cache with a path-dependent TTL"""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        overlay_ttl: float = OVERLAY_TTL,
        feed_ttl: float = FEED_TTL,
        overlay_mounts: Iterable[str] = (),
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.overlay_ttl = overlay_ttl
        self.feed_ttl = feed_ttl
        self.overlay_mounts = tuple(overlay_mounts)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._current_cwd = ""
        self._hits = 0
        self._misses = 0

    def get(self, path: str) -> Optional[CacheEntry]:
        entry = self._entries.get(path)
        if entry is None:
            self._misses += 1
            return None
        self._hits += 1
        return entry

    def set(self, path: str, entries: List[Entry]) -> None:
        self._entries[path] = CacheEntry(path=path, entries=list(entries), timestamp=self._clock())

    def mark_dirty(self, path: str) -> None:
        entry = self._entries.get(path)
        if entry is not None:
            entry.dirty = True

    def invalidate(self, path: Optional[str] = None) -> None:
        """Drop one path, or everything when path is None"""
        if path is None:
            logger.debug("cache: clearing all entries")
            self._entries.clear()
        else:
            logger.debug(f"cache: invalidating {path}")
            self._entries.pop(path, None)

    def ttl_for(self, path: str) -> float:
        """Seconds a listing of path stays fresh"""
        if any(is_within(path, mount) for mount in self.overlay_mounts):
            return self.overlay_ttl
        if _FEED_SEGMENT.search(path):
            return self.feed_ttl
        return self.default_ttl

    def age(self, path: str) -> Optional[float]:
        entry = self._entries.get(path)
        if entry is None:
            return None
        return self._clock() - entry.timestamp

    def is_stale(self, path: str) -> bool:
        """True if a cached listing exists but is dirty or past its TTL"""
        entry = self._entries.get(path)
        if entry is None:
            return False
        if entry.dirty:
            return True
        return self._clock() - entry.timestamp > self.ttl_for(path)

    def cwd_update(self, cwd: str) -> None:
        """Forget everything when the working directory changes"""
        if cwd != self._current_cwd:
            self._entries.clear()
            self._current_cwd = cwd

    def stats(self) -> Dict[str, object]:
        return {
            "hits": self._hits,
            "misses": self._misses,
            "entries": len(self._entries),
            "cwd": self._current_cwd,
        }

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    def __len__(self):
        return len(self._entries)
