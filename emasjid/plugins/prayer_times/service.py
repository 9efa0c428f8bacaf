"""
PrayerTimeService: the entry point for prayer times.

Lookup order for fetch(masjid_id, date, zone):
  1. fresh cache entry for (zone, date)
  2. live fetch of the zone's month from the backend (all days cached)
  3. expired cache entry, returned with source=stale_fallback
  4. ServiceUnavailableError wrapping the fetch failure
Cache entries are zone-scoped; every masjid in a zone shares them.
"""
import calendar
import logging
import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from .backends.base import ScheduleBackend, pick_day
from .cache import ScheduleCache
from .errors import NotFoundError, ServiceUnavailableError, TransportError
from .schedule import PrayerSchedule, Source
from .zones import MALAYSIA_TZ, is_valid_zone

DateLike = Union[date, str]


def as_date(value: DateLike) -> date:
    """Accept a date or "YYYY-MM-DD" string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


def date_range(start: DateLike, end: DateLike) -> List[date]:
    """Every date from start to end inclusive; empty when end < start."""
    current, last = as_date(start), as_date(end)
    dates = []
    while current <= last:
        dates.append(current)
        current += timedelta(days=1)
    return dates


class PrayerTimeService:
    DEFAULT_CACHE_MINUTES = 60

    def __init__(
        self,
        backend: ScheduleBackend,
        cache: Optional[ScheduleCache] = None,
        max_age_minutes: float = DEFAULT_CACHE_MINUTES,
        clock: Optional[Callable[[], float]] = None,
        max_workers: int = 1,
    ):
        self.backend = backend
        self.clock = clock or time.time
        self.cache = cache if cache is not None else ScheduleCache(clock=self.clock)
        self.max_workers = max(1, int(max_workers or 1))
        self.logger = logging.getLogger(self.__class__.__name__)
        # (zone, year, month) -> [lock, users]
        self._month_locks: Dict[Tuple[str, int, int], list] = {}
        self._locks_guard = threading.Lock()
        self.set_max_age(max_age_minutes)

    def set_max_age(self, minutes: float) -> None:
        """Change how long a fetched schedule counts as fresh."""
        minutes = float(minutes)
        if minutes < 0:
            raise ValueError("cache duration must be >= 0 minutes")
        self.max_age = minutes * 60
        self.logger.info(f"Prayer times cache duration set to {minutes:g} minutes")

    def fetch(self, masjid_id: str, prayer_date: DateLike, zone: str) -> PrayerSchedule:
        """Schedule for one masjid and date. Raises ServiceUnavailableError when nothing usable exists."""
        zone = self._check_zone(zone)
        target = as_date(prayer_date)
        key = (zone, target.isoformat())

        cached = self.cache.get(key, self.max_age)
        if cached is not None:
            self.logger.debug(f"Cache hit for {zone}-{key[1]}")
            return cached._replace(masjid_id=masjid_id)

        try:
            schedule = self._fetch_and_cache(zone, target)
        except (TransportError, NotFoundError) as e:
            self.logger.error(f"Failed to fetch prayer times for {zone}-{key[1]}: {e}")
            stale = self.cache.get(key, math.inf)
            if stale is not None:
                self.logger.warning(f"Using stale cache as fallback for {zone}-{key[1]}")
                return stale._replace(masjid_id=masjid_id, source=Source.STALE_FALLBACK)
            raise ServiceUnavailableError(
                f"Failed to fetch prayer times for zone {zone} on {key[1]}: {e}", cause=e
            ) from e

        return schedule._replace(masjid_id=masjid_id)

    def fetch_range(self, masjid_id: str, start: DateLike, end: DateLike, zone: str) -> List[PrayerSchedule]:
        """One schedule per date in [start, end], in date order."""
        zone = self._check_zone(zone)
        dates = date_range(start, end)
        if self.max_workers <= 1 or len(dates) <= 1:
            return [self.fetch(masjid_id, d, zone) for d in dates]
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(lambda d: self.fetch(masjid_id, d, zone), dates))

    def fetch_today(self, masjid_id: str, zone: str) -> PrayerSchedule:
        return self.fetch(masjid_id, self.today(), zone)

    def fetch_month(self, masjid_id: str, zone: str, year: Optional[int] = None,
                    month: Optional[int] = None) -> List[PrayerSchedule]:
        """Whole calendar month; defaults to the current month in Malaysia."""
        today = self.today()
        year = year or today.year
        month = month or today.month
        _, last_day = calendar.monthrange(year, month)
        return self.fetch_range(masjid_id, date(year, month, 1), date(year, month, last_day), zone)

    def today(self) -> date:
        return datetime.fromtimestamp(self.clock(), tz=MALAYSIA_TZ).date()

    def _check_zone(self, zone: str) -> str:
        if not is_valid_zone(zone):
            raise ValueError(f"Unknown JAKIM zone: {zone}")
        return zone.upper()

    @contextmanager
    def _month_lock(self, zone: str, target: date) -> Iterator[None]:
        """Hold the (zone, year, month) lock; the entry is dropped once no thread uses it."""
        lock_key = (zone, target.year, target.month)
        with self._locks_guard:
            entry = self._month_locks.get(lock_key)
            if entry is None:
                entry = self._month_locks[lock_key] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._month_locks[lock_key]

    def _fetch_and_cache(self, zone: str, target: date) -> PrayerSchedule:
        key = (zone, target.isoformat())
        with self._month_lock(zone, target):
            # Another thread may have fetched this month while we waited
            cached = self.cache.get(key, self.max_age)
            if cached is not None:
                return cached

            self.logger.info(f"Fetching prayer times for zone {zone}, date {key[1]}")
            schedules = self.backend.fetch_month(zone, target.year, target.month)
            fetched_at = datetime.fromtimestamp(self.clock(), tz=timezone.utc)
            by_date: Dict[str, PrayerSchedule] = {}
            for schedule in schedules:
                # First entry for a date wins
                by_date.setdefault(schedule.prayer_date, schedule._replace(fetched_at=fetched_at, masjid_id=None))
            for prayer_date, schedule in by_date.items():
                self.cache.put((zone, prayer_date), schedule)
            self.logger.info(f"Successfully fetched and cached {len(by_date)} days for zone {zone}")
            return pick_day(list(by_date.values()), target)

