"""
Timeline cache with TTL (Time-To-Live) and LRU (Least Recently Used) eviction.

Skips re-analysis when the same audio source is inserted again. Keys are
SHA-256 of the source key plus the analysis parameters, so timelines built
with different configs never collide.

Silent or empty timelines are refused on write and evicted on read: an
all-zero BASS channel is the signature of a failed decode, and caching it
would make the failure permanent.

Usage::

    from infrastructure.cache import TimelineCache

    cache = TimelineCache(max_size=64)
    timeline = cache.get("song.ogg", config)
    if timeline is None:
        timeline = compute_timeline(samples, config)
        cache.put("song.ogg", config, timeline)
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock

from core.analysis.timeline import FrequencyTimeline
from core.config import AnalysisConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """Cached timeline with metadata."""

    timeline: FrequencyTimeline
    timestamp: float  # clock reading when cached
    source_key: str  # original key for debugging


class TimelineCache:
    """
    Thread-safe timeline cache with TTL and LRU eviction.

    Args:
        max_size: Maximum number of entries (default: 64)
        ttl_seconds: Time-to-live in seconds (default: 3600 = 1 hour)
        clock: Time source in seconds (default: time.monotonic)
    """

    def __init__(
        self,
        max_size: int = 64,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = Lock()

    def _make_key(self, source_key: str, config: AnalysisConfig) -> str:
        """
        Generate cache key from the source key and analysis parameters.

        Returns:
            Hex-encoded SHA256 hash
        """
        raw = (
            f"{source_key}|{config.window_size}|{config.hop_size}|"
            f"{config.ticks_per_second}|{config.reducer}"
        )
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()

    def get(self, source_key: str, config: AnalysisConfig) -> FrequencyTimeline | None:
        """
        Retrieve a cached timeline if present, unexpired and not corrupt.

        Returns:
            Cached timeline if found and valid, None otherwise
        """
        key = self._make_key(source_key, config)

        with self._lock:
            entry = self._cache.get(key)

            if entry is None:
                return None

            if self._clock() - entry.timestamp > self.ttl_seconds:
                del self._cache[key]
                return None

            if not entry.timeline.has_content():
                logger.warning("Evicting corrupt cached timeline for %r", source_key)
                del self._cache[key]
                return None

            self._cache.move_to_end(key)
            return entry.timeline

    def put(self, source_key: str, config: AnalysisConfig, timeline: FrequencyTimeline) -> bool:
        """
        Store a timeline, evicting the least-recently-used entry if full.

        Returns:
            True if stored, False if the timeline was refused as empty or silent
        """
        if timeline.is_loading or not timeline.has_content():
            logger.warning(
                "Refusing to cache timeline for %r (%d ticks, no content)",
                source_key,
                timeline.duration_ticks,
            )
            return False

        key = self._make_key(source_key, config)

        with self._lock:
            if len(self._cache) >= self.max_size and key not in self._cache:
                self._cache.popitem(last=False)

            self._cache[key] = CacheEntry(
                timeline=timeline,
                timestamp=self._clock(),
                source_key=source_key,
            )
            self._cache.move_to_end(key)
        return True

    def invalidate(self, source_key: str, config: AnalysisConfig) -> bool:
        """Drop one entry. Returns True if it was present."""
        key = self._make_key(source_key, config)
        with self._lock:
            return self._cache.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.info("Timeline cache cleared (%d entries)", count)

    def size(self) -> int:
        """Number of entries currently held, expired ones included."""
        with self._lock:
            return len(self._cache)

    def evict_expired(self) -> int:
        """Sweep entries older than the TTL. Returns how many were dropped."""
        cutoff = self._clock() - self.ttl_seconds
        with self._lock:
            stale = [k for k, e in self._cache.items() if e.timestamp < cutoff]
            for k in stale:
                del self._cache[k]
        if stale:
            logger.debug("Evicted %d expired timelines", len(stale))
        return len(stale)
