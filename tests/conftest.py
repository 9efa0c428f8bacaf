from __future__ import annotations

import calendar
from datetime import date, datetime, timezone

import pytest

from emasjid.core import db
from emasjid.plugins.prayer_times.backends.base import ScheduleBackend
from emasjid.plugins.prayer_times.errors import TransportError
from emasjid.plugins.prayer_times.schedule import PrayerSchedule

WLY01_TIMES = {
    "fajr": "05:57",
    "sunrise": "07:13",
    "dhuhr": "13:14",
    "asr": "16:37",
    "maghrib": "19:11",
    "isha": "20:25",
}


class FakeClock:
    """Callable clock returning a settable Unix timestamp."""

    def __init__(self, start: datetime) -> None:
        self.now = start.timestamp()

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend(ScheduleBackend):
    """Serves the same six times for every day; counts calls and can be told to fail."""

    def __init__(self, times: dict | None = None, missing_days: tuple = ()) -> None:
        super().__init__({})
        self.times = dict(times or WLY01_TIMES)
        self.missing_days = set(missing_days)
        self.calls: list[tuple[str, int, int]] = []
        self.fail = False

    def fetch_month(self, zone: str, year: int, month: int) -> list[PrayerSchedule]:
        self.calls.append((zone, year, month))
        if self.fail:
            raise TransportError("HTTP 503: Service Unavailable for fake")
        _, days = calendar.monthrange(year, month)
        return [
            PrayerSchedule(
                masjid_id=None,
                prayer_date=date(year, month, day).isoformat(),
                zone=zone,
                hijri="1446-06-23",
                **self.times,
            )
            for day in range(1, days + 1)
            if date(year, month, day).isoformat() not in self.missing_days
        ]


@pytest.fixture
def clock() -> FakeClock:
    # 09:00 in Kuala Lumpur on 2024-12-25
    return FakeClock(datetime(2024, 12, 25, 1, 0, tzinfo=timezone.utc))


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def sqlite_db(tmp_path):
    db.dispose_db()
    db.init_db(db_url=f"sqlite:///{tmp_path / 'emasjid.db'}")
    yield
    db.dispose_db()
