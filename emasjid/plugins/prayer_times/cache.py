"""
In-memory schedule cache keyed by (zone, date), with lazy expiry.
"""
import logging
import math
import threading
import time
from collections import namedtuple
from typing import Callable, Dict, Optional, Tuple

from .schedule import PrayerSchedule

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]  # (zone, "YYYY-MM-DD")

CacheEntry = namedtuple("CacheEntry", ["schedule", "zone", "stored_at"])


class ScheduleCache:
    """Holds at most one fresh schedule per (zone, date).

    Expiry is checked on read. An expired entry drops out of the fresh view but
    is kept as the key's stale copy until the next put(), so get(key, math.inf)
    can still serve it when a refetch fails.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self.clock = clock or time.time
        self._fresh: Dict[CacheKey, CacheEntry] = {}
        self._stale: Dict[CacheKey, CacheEntry] = {}
        self._lock = threading.Lock()

    def put(self, key: CacheKey, schedule: PrayerSchedule) -> None:
        """Store schedule under key, replacing any fresh or stale entry."""
        entry = CacheEntry(schedule=schedule, zone=key[0], stored_at=self.clock())
        with self._lock:
            self._fresh[key] = entry
            self._stale.pop(key, None)

    def get(self, key: CacheKey, max_age: float) -> Optional[PrayerSchedule]:
        """Return the schedule stored under key if it is at most max_age seconds old.

        max_age=math.inf returns whatever is known for the key, expired or not.
        """
        with self._lock:
            entry = self._fresh.get(key)
            if entry is not None:
                age = self.clock() - entry.stored_at
                if age <= max_age:
                    return entry.schedule
                logger.debug(f"Cache entry {key} expired ({age:.0f}s old)")
                del self._fresh[key]
                self._stale[key] = entry
                return None
            if max_age == math.inf:
                stale = self._stale.get(key)
                return stale.schedule if stale else None
            return None

    def clear(self) -> None:
        with self._lock:
            self._fresh.clear()
            self._stale.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._fresh)
