"""
Manual backend: timetable typed in by the masjid committee instead of fetched.
Config:
  manual_times: {fajr: "05:55", sunrise: "07:10", dhuhr: "13:15", asr: "16:35", maghrib: "19:20", isha: "20:30"}
  manual_dates: {"2024-12-25": {maghrib: "19:18"}, ...}   # optional per-day overrides
"""
import calendar
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from ..schedule import PRAYER_ORDER, PrayerSchedule, Source, to_minutes
from .base import ScheduleBackend


class ManualBackend(ScheduleBackend):
    def __init__(self, config: Optional[Dict[str, Any]] = None, logger=None):
        super().__init__(config, logger)
        self.times = self._validated(self.config.get("manual_times") or {}, require_all=True)
        self.overrides = {
            str(day): self._validated(times or {}, require_all=False)
            for day, times in (self.config.get("manual_dates") or {}).items()
        }

    def _validated(self, times: Dict[str, Any], require_all: bool) -> Dict[str, str]:
        result = {}
        for prayer, value in times.items():
            if prayer not in PRAYER_ORDER:
                raise ValueError(f"Unknown prayer in manual times: {prayer}")
            to_minutes(str(value))
            result[prayer] = str(value).strip()
        if require_all:
            missing = [p for p in PRAYER_ORDER if p not in result]
            if missing:
                raise ValueError(f"manual_times missing: {', '.join(missing)}")
        return result

    def fetch_month(self, zone: str, year: int, month: int) -> List[PrayerSchedule]:
        fetched_at = datetime.now(timezone.utc)
        _, days = calendar.monthrange(year, month)
        schedules = []
        for day in range(1, days + 1):
            prayer_date = date(year, month, day).isoformat()
            times = dict(self.times)
            times.update(self.overrides.get(prayer_date, {}))
            schedules.append(PrayerSchedule(
                masjid_id=None,
                prayer_date=prayer_date,
                zone=zone,
                source=Source.MANUAL,
                fetched_at=fetched_at,
                **times,
            ))
        return schedules
