"""
Base interface for prayer times backends.
Backends return PrayerSchedule values with masjid_id=None; the service binds the masjid.
"""
import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional

from ..errors import NotFoundError
from ..schedule import PrayerSchedule


class ScheduleBackend(ABC):
    """Abstract backend: one month of daily schedules for a zone."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, logger=None):
        self.config = config or {}
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def fetch_month(self, zone: str, year: int, month: int) -> List[PrayerSchedule]:
        """Fetch every published day of the month for zone.
        Raises TransportError when the upstream call fails or the payload is unusable.
        """
        pass

    def fetch_day(self, zone: str, target_date: date) -> PrayerSchedule:
        """Fetch the month containing target_date and return that day's schedule.
        Raises NotFoundError when the month has no entry for that day.
        """
        schedules = self.fetch_month(zone, target_date.year, target_date.month)
        return pick_day(schedules, target_date)


def pick_day(schedules: List[PrayerSchedule], target_date: date) -> PrayerSchedule:
    wanted = target_date.isoformat()
    for schedule in schedules:
        if schedule.prayer_date == wanted:
            return schedule
    raise NotFoundError(f"No prayer data found for date {wanted}")
