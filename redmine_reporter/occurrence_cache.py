"""
Occurrence cache: rate limiting for repeated exceptions.

Maps fingerprint -> last time it was seen (monotonic seconds). A fingerprint
seen again within the cooldown is throttled. The cache is bounded: when it
reaches capacity, entries older than the cooldown are dropped, and if that is
not enough the oldest entries are dropped until the cache is half full.
Dropping half at once keeps eviction from running on every write near
capacity.
"""

import logging
import threading
import time
from typing import Callable, Dict

logger = logging.getLogger(__name__)

MAX_CACHE_SIZE = 500


class OccurrenceCache:
    """Thread-safe fingerprint -> last_seen map with bounded size."""

    def __init__(self, max_size: int = MAX_CACHE_SIZE, clock: Callable[[], float] = time.monotonic):
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[str, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def should_throttle(self, fingerprint: str, cooldown: float) -> bool:
        """True if the fingerprint was seen less than `cooldown` seconds ago."""
        with self._lock:
            return self._is_throttled(fingerprint, cooldown, self._clock())

    def record_occurrence(self, fingerprint: str, cooldown: float) -> None:
        """Upsert fingerprint -> now, evicting first when at capacity."""
        with self._lock:
            self._record(fingerprint, cooldown, self._clock())

    def check_and_record(self, fingerprint: str, cooldown: float) -> bool:
        """Throttle check and record in one critical section.

        The occurrence is recorded whether or not the call is throttled, so
        the cooldown window slides forward on every occurrence. Returns True
        if the call is throttled.
        """
        with self._lock:
            now = self._clock()
            throttled = self._is_throttled(fingerprint, cooldown, now)
            self._record(fingerprint, cooldown, now)
            return throttled

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def _is_throttled(self, fingerprint: str, cooldown: float, now: float) -> bool:
        last_seen = self._entries.get(fingerprint)
        if last_seen is None:
            return False
        return now - last_seen < cooldown

    def _record(self, fingerprint: str, cooldown: float, now: float) -> None:
        if len(self._entries) >= self.max_size:
            self._evict(cooldown, now)
        self._entries[fingerprint] = now

    def _evict(self, cooldown: float, now: float) -> None:
        # Caller holds the lock.
        before = len(self._entries)
        cutoff = now - cooldown
        self._entries = {fp: ts for fp, ts in self._entries.items() if ts >= cutoff}

        if len(self._entries) >= self.max_size:
            target = self.max_size // 2
            by_age = sorted(self._entries.items(), key=lambda item: item[1])
            for fp, _ in by_age[:len(self._entries) - target]:
                del self._entries[fp]

        logger.debug(f"Occurrence cache evicted {before - len(self._entries)} entries ({len(self._entries)} left)")
