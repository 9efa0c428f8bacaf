"""
PrayerSchedule value type and helpers used by the service, the API and the task.
PrayerSchedule is an immutable named tuple; use _replace() to derive a new value.
"""
from collections import namedtuple
from datetime import date, datetime, time
from typing import Dict, List, Optional, Tuple, Union


class Source:
    """Where a schedule came from."""
    FRESH = "fresh"
    MANUAL = "manual"
    STALE_FALLBACK = "stale_fallback"


# Chronological order within a day
PRAYER_ORDER = ("fajr", "sunrise", "dhuhr", "asr", "maghrib", "isha")

PRAYER_TRANSLATIONS = {
    "fajr": {"ms": "Subuh", "ar": "الفجر"},
    "sunrise": {"ms": "Syuruk", "ar": "الشروق"},
    "dhuhr": {"ms": "Zohor", "ar": "الظهر"},
    "asr": {"ms": "Asar", "ar": "العصر"},
    "maghrib": {"ms": "Maghrib", "ar": "المغرب"},
    "isha": {"ms": "Isyak", "ar": "العشاء"},
}

TIME_FORMATS = ("12-hour", "24-hour")

_PrayerScheduleBase = namedtuple(
    "PrayerSchedule",
    [
        "masjid_id",
        "prayer_date",  # "YYYY-MM-DD"
        "zone",         # JAKIM zone code, e.g. "WLY01"
        "fajr",         # "HH:MM" local time
        "sunrise",
        "dhuhr",
        "asr",
        "maghrib",
        "isha",
        "source",       # Source.FRESH | Source.MANUAL | Source.STALE_FALLBACK
        "fetched_at",   # aware UTC datetime
        "hijri",        # str or None
        "adjustments",  # {prayer: minutes} or None
    ],
    defaults=(Source.FRESH, None, None, None),
)


class PrayerSchedule(_PrayerScheduleBase):
    """Six daily times for one masjid, date and zone."""
    __slots__ = ()

    @property
    def id(self) -> str:
        return f"{self.masjid_id}-{self.prayer_date}-{self.zone}"

    def times(self) -> List[Tuple[str, str]]:
        """[(prayer_name, "HH:MM"), ...] in chronological order."""
        return [(name, getattr(self, name)) for name in PRAYER_ORDER]

    def to_dict(self) -> Dict:
        data = self._asdict()
        data["id"] = self.id
        if isinstance(self.fetched_at, datetime):
            data["fetched_at"] = self.fetched_at.isoformat()
        data["adjustments"] = dict(self.adjustments or {})
        return data


def to_minutes(hhmm: str) -> int:
    """Minutes since midnight for an "HH:MM" string."""
    hour, minute = str(hhmm).strip().split(":")[:2]
    hour, minute = int(hour), int(minute)
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid time of day: {hhmm}")
    return hour * 60 + minute


def from_minutes(minutes: int) -> str:
    minutes = max(0, min(minutes, 24 * 60 - 1))
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def is_chronological(schedule: PrayerSchedule) -> bool:
    """True if fajr < sunrise < dhuhr < asr < maghrib < isha."""
    values = [to_minutes(t) for _, t in schedule.times()]
    return all(a < b for a, b in zip(values, values[1:]))


def apply_adjustments(schedule: PrayerSchedule, offsets: Optional[Dict[str, int]]) -> PrayerSchedule:
    """Return a copy with each named prayer shifted by offsets[name] minutes.

    Times are clamped to the same calendar day. Unknown prayer names raise ValueError.
    """
    if not offsets:
        return schedule
    changes = {}
    for prayer, minutes in offsets.items():
        if prayer not in PRAYER_ORDER:
            raise ValueError(f"Unknown prayer in adjustments: {prayer}")
        changes[prayer] = from_minutes(to_minutes(getattr(schedule, prayer)) + int(minutes))
    return schedule._replace(adjustments={k: int(v) for k, v in offsets.items()}, **changes)


def format_time(hhmm: str, time_format: str = "24-hour") -> str:
    """Render "HH:MM" as 24-hour (unchanged) or 12-hour ("1:05 PM")."""
    if time_format not in TIME_FORMATS:
        raise ValueError(f"Unknown time format: {time_format}")
    if time_format == "24-hour":
        return hhmm
    minutes = to_minutes(hhmm)
    hours, mins = divmod(minutes, 60)
    period = "PM" if hours >= 12 else "AM"
    display_hours = 12 if hours % 12 == 0 else hours % 12
    return f"{display_hours}:{mins:02d} {period}"


def prayer_name(prayer: str, language: str = "ms") -> str:
    """Display name of a prayer in English ("en"), Malay ("ms") or Arabic ("ar")."""
    if language == "en":
        return prayer
    return PRAYER_TRANSLATIONS.get(prayer, {}).get(language, prayer)


def _time_of_day(now: Union[datetime, time]) -> int:
    if isinstance(now, datetime):
        now = now.time()
    return now.hour * 60 + now.minute


def current_prayer(schedule: PrayerSchedule, now: Union[datetime, time]) -> Optional[Tuple[str, str]]:
    """The entry whose time has arrived and whose successor has not; None before fajr.

    now must already be in the masjid's local time.
    """
    minute = _time_of_day(now)
    current = None
    for name, hhmm in schedule.times():
        if to_minutes(hhmm) <= minute:
            current = (name, hhmm)
        else:
            break
    return current


def next_prayer(schedule: PrayerSchedule, now: Union[datetime, time]) -> Optional[Tuple[str, str]]:
    """First entry strictly after now; None once isha has passed."""
    minute = _time_of_day(now)
    for name, hhmm in schedule.times():
        if to_minutes(hhmm) > minute:
            return (name, hhmm)
    return None


def is_jumuah(schedule: PrayerSchedule) -> bool:
    """True when the schedule's date is a Friday (dhuhr is replaced by the Friday prayer)."""
    return date.fromisoformat(schedule.prayer_date).weekday() == 4
