"""
Backend for the waktusolat.app mirror of JAKIM's official e-Solat times.
GET {base_url}/{zone}?year=&month= returns {"prayers": [{day, hijri, fajr, syuruk, ...}]}
with every time as a Unix timestamp.
"""
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from ..errors import TransportError
from ..schedule import PrayerSchedule, Source, is_chronological
from ..zones import MALAYSIA_TZ, ZONES, ZONE_STATES
from .base import ScheduleBackend

DEFAULT_BASE_URL = "https://api.waktusolat.app/v2/solat"
DEFAULT_ZONES_URL = "https://api.waktusolat.app/v2/zones"
DEFAULT_TIMEOUT = 10  # seconds

# our field -> API field
FIELD_MAP = {
    "fajr": "fajr",
    "sunrise": "syuruk",
    "dhuhr": "dhuhr",
    "asr": "asr",
    "maghrib": "maghrib",
    "isha": "isha",
}

HEADERS = {
    "Accept": "application/json",
    "User-Agent": "Open-E-Masjid/1.0",
}


def format_timestamp(timestamp: Any) -> str:
    """Unix timestamp -> "HH:MM" wall-clock time in Asia/Kuala_Lumpur."""
    return datetime.fromtimestamp(int(timestamp), tz=MALAYSIA_TZ).strftime("%H:%M")


def _title_state(state: str) -> str:
    if not state:
        return ""
    return " ".join(word.capitalize() for word in state.split())


class WaktuSolatBackend(ScheduleBackend):
    """Fetches a zone's monthly timetable with one GET per (zone, month)."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, logger=None,
                 session: Optional[requests.Session] = None):
        super().__init__(config, logger)
        self.base_url = str(self.config.get("base_url") or DEFAULT_BASE_URL).rstrip("/")
        self.zones_url = self.config.get("zones_url") or DEFAULT_ZONES_URL
        self.timeout = float(self.config.get("timeout", DEFAULT_TIMEOUT))
        self.session = session or requests.Session()

    def fetch_month(self, zone: str, year: int, month: int) -> List[PrayerSchedule]:
        data = self._get_json(f"{self.base_url}/{zone}", params={"year": year, "month": month})

        prayers = data.get("prayers") if isinstance(data, dict) else None
        if not isinstance(prayers, list):
            raise TransportError("Invalid API response format: missing prayers list")

        fetched_at = datetime.now(timezone.utc)
        schedules = []
        for entry in prayers:
            schedule = self._transform_entry(entry, zone, year, month, fetched_at)
            if schedule is not None:
                schedules.append(schedule)
        self.logger.info(f"Fetched {len(schedules)} days for zone {zone} {year}-{month:02d}")
        return schedules

    def fetch_zones(self) -> List[Dict[str, str]]:
        """Zone directory as [{code, name, state}]; falls back to the built-in table on any failure."""
        try:
            data = self._get_json(self.zones_url)
            if not isinstance(data, list):
                raise TransportError("Invalid zones response format")
            zones = []
            for item in data:
                if not isinstance(item, dict):
                    continue
                code = item.get("code") or item.get("jakimCode")
                if not code:
                    continue
                zones.append({
                    "code": code,
                    "name": item.get("name") or item.get("daerah") or ZONES.get(code, ""),
                    "state": _title_state(item.get("state") or item.get("negeri") or ""),
                })
            return zones
        except TransportError as e:
            self.logger.error(f"Failed to fetch JAKIM zones, using built-in table: {e}")
            return [
                {"code": code, "name": name, "state": ZONE_STATES[code]}
                for code, name in ZONES.items()
            ]

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        self.logger.debug(f"Making API request to {url} with params {params}")
        try:
            response = self.session.get(url, params=params, headers=HEADERS, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Network error fetching {url}: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TransportError(f"HTTP {response.status_code}: {response.reason} for {url}")

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {url}: {e}") from e

    def _transform_entry(self, entry: Any, zone: str, year: int, month: int,
                         fetched_at: datetime) -> Optional[PrayerSchedule]:
        if not isinstance(entry, dict):
            return None
        try:
            prayer_date = date(year, month, int(entry.get("day")))
            times = {ours: format_timestamp(entry[theirs]) for ours, theirs in FIELD_MAP.items()}
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
            self.logger.warning(f"Skipping malformed prayer entry for zone {zone}: {entry!r} ({e})")
            return None
        schedule = PrayerSchedule(
            masjid_id=None,
            prayer_date=prayer_date.isoformat(),
            zone=zone,
            source=Source.FRESH,
            fetched_at=fetched_at,
            hijri=entry.get("hijri"),
            **times,
        )
        if not is_chronological(schedule):
            self.logger.warning(f"Skipping out-of-order prayer times for zone {zone} on {schedule.prayer_date}")
            return None
        return schedule
