"""Summary: In-process cache for learned relationship patterns.

Importance: Avoids re-reading relationship rows on every availability request.
Alternatives: Use Redis with per-key TTLs.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from meetpilot.models import LearnedPattern

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    pattern: LearnedPattern
    expires_at: float


class PreferenceCache:
    """Summary: TTL cache of learned patterns keyed by the sorted user pair.

    Importance: Built once per process and injected, so its lifetime and eviction are explicit.
    Alternatives: A module-level dictionary that never expires.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}

    def get(self, key: str) -> LearnedPattern | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry.pattern

    def put(self, key: str, pattern: LearnedPattern) -> None:
        """Summary: Store a pattern, evicting the soonest-expiring entry when full.

        Importance: Bounds memory for long-running API processes.
        Alternatives: LRU eviction on reads.
        """

        if key not in self._entries and len(self._entries) >= self._max_entries:
            oldest = min(self._entries, key=lambda item: self._entries[item].expires_at)
            del self._entries[oldest]
        self._entries[key] = _CacheEntry(pattern=pattern, expires_at=self._clock() + self._ttl)

    def invalidate(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            logger.debug("Invalidated learned pattern for %s.", key)

    def __len__(self) -> int:
        return len(self._entries)
