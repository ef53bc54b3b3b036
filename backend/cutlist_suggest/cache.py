"""Short-lived in-process cache for suggestion results, invalidated by tag.

Suggestion queries cache their results under the ``suggestion-patterns`` tag;
learning and maintenance drop every entry carrying that tag after they write.

TTL policies:
- Suggestion results: ``Settings.cache_ttl_seconds`` (default 5 minutes)
"""

import logging
import threading
import time
from typing import Any, Dict, Iterable, Optional, Set, Tuple

logger = logging.getLogger(__name__)

# Tags
TAG_SUGGESTION_PATTERNS = "suggestion-patterns"

# Key prefixes
PREFIX_PRODUCTS = "suggest:products:"
PREFIX_SIZES = "suggest:sizes:"
PREFIX_PROFILES = "suggest:profiles:"
PREFIX_COMBINATIONS = "suggest:combinations:"

_MISSING = object()


class TaggedResultCache:
    """Thread-safe TTL cache whose entries can be dropped by tag."""

    def __init__(self, ttl_seconds: float = 300.0):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, Tuple[float, Any, Tuple[str, ...]]] = {}
        self._tags: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or ``default`` when missing or expired."""
        with self._lock:
            entry = self._entries.get(key, _MISSING)
            if entry is _MISSING:
                return default
            expires_at, value, _ = entry
            if expires_at <= time.monotonic():
                self._drop(key)
                return default
            logger.debug("CACHE HIT %s", key)
            return value

    def set(
        self,
        key: str,
        value: Any,
        tags: Iterable[str] = (),
        ttl: Optional[float] = None,
    ) -> None:
        ttl = self.ttl_seconds if ttl is None else ttl
        tag_tuple = tuple(tags)
        with self._lock:
            self._drop(key)
            self._entries[key] = (time.monotonic() + ttl, value, tag_tuple)
            for tag in tag_tuple:
                self._tags.setdefault(tag, set()).add(key)
        logger.debug("CACHE SAVE %s tags=%s", key, tag_tuple)

    def delete(self, key: str) -> None:
        with self._lock:
            self._drop(key)

    def invalidate_by_tag(self, tag: str) -> int:
        """Drop every entry carrying ``tag``. Returns how many were removed."""
        with self._lock:
            keys = list(self._tags.pop(tag, ()))
            for key in keys:
                self._drop(key)
        logger.debug("CACHE INVALIDATE tag=%s removed=%d", tag, len(keys))
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tags.clear()

    def __len__(self) -> int:
        return len(self._entries)

    # ── helpers (caller holds the lock) ──────────────────────────────

    def _drop(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        for tag in entry[2]:
            keys = self._tags.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tags[tag]
