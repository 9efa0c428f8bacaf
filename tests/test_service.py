from __future__ import annotations

import threading
from datetime import date, datetime, timezone

import pytest

from emasjid.plugins.prayer_times.errors import ServiceUnavailableError, TransportError
from emasjid.plugins.prayer_times.schedule import Source
from emasjid.plugins.prayer_times.service import PrayerTimeService, as_date, date_range

from conftest import WLY01_TIMES, FakeBackend


def _service(backend, clock, **kwargs) -> PrayerTimeService:
    return PrayerTimeService(backend, max_age_minutes=60, clock=clock, **kwargs)


def test_fetch_returns_fresh_schedule(backend, clock) -> None:
    service = _service(backend, clock)

    schedule = service.fetch("masjid-1", "2024-12-25", "WLY01")

    assert schedule.masjid_id == "masjid-1"
    assert schedule.prayer_date == "2024-12-25"
    assert schedule.zone == "WLY01"
    assert schedule.source == Source.FRESH
    assert schedule.id == "masjid-1-2024-12-25-WLY01"
    assert dict(schedule.times()) == WLY01_TIMES
    assert schedule.fetched_at == datetime(2024, 12, 25, 1, 0, tzinfo=timezone.utc)
    assert backend.calls == [("WLY01", 2024, 12)]


def test_repeat_fetch_hits_cache(backend, clock) -> None:
    service = _service(backend, clock)

    first = service.fetch("masjid-1", date(2024, 12, 25), "WLY01")
    clock.advance(59 * 60)
    second = service.fetch("masjid-1", date(2024, 12, 25), "WLY01")

    assert first == second
    assert len(backend.calls) == 1


def test_other_days_in_same_month_come_from_cache(backend, clock) -> None:
    service = _service(backend, clock)

    service.fetch("masjid-1", "2024-12-25", "WLY01")
    other = service.fetch("masjid-1", "2024-12-01", "WLY01")

    assert other.prayer_date == "2024-12-01"
    assert len(backend.calls) == 1


def test_masjids_in_same_zone_share_cache(backend, clock) -> None:
    service = _service(backend, clock)

    a = service.fetch("masjid-a", "2024-12-25", "WLY01")
    b = service.fetch("masjid-b", "2024-12-25", "WLY01")

    assert (a.masjid_id, b.masjid_id) == ("masjid-a", "masjid-b")
    assert a.times() == b.times()
    assert len(backend.calls) == 1


def test_expired_entry_is_refetched(backend, clock) -> None:
    service = _service(backend, clock)

    service.fetch("masjid-1", "2024-12-25", "WLY01")
    clock.advance(60 * 60 + 1)
    schedule = service.fetch("masjid-1", "2024-12-25", "WLY01")

    assert schedule.source == Source.FRESH
    assert len(backend.calls) == 2


def test_stale_cache_used_when_refetch_fails(backend, clock) -> None:
    service = _service(backend, clock)
    fresh = service.fetch("masjid-1", "2024-12-25", "WLY01")

    clock.advance(2 * 60 * 60)
    backend.fail = True
    schedule = service.fetch("masjid-1", "2024-12-25", "WLY01")

    assert schedule.source == Source.STALE_FALLBACK
    assert schedule.times() == fresh.times()
    assert schedule.fetched_at == fresh.fetched_at
    assert len(backend.calls) == 2


def test_cold_start_failure_raises_service_unavailable(backend, clock) -> None:
    backend.fail = True
    service = _service(backend, clock)

    with pytest.raises(ServiceUnavailableError) as excinfo:
        service.fetch("masjid-1", "2024-12-25", "WLY01")

    assert isinstance(excinfo.value.cause, TransportError)
    assert excinfo.value.__cause__ is excinfo.value.cause
    assert "WLY01" in str(excinfo.value)


def test_missing_day_raises_service_unavailable(clock) -> None:
    backend = FakeBackend(missing_days=("2024-12-25",))
    service = _service(backend, clock)

    with pytest.raises(ServiceUnavailableError):
        service.fetch("masjid-1", "2024-12-25", "WLY01")
    # The rest of the month was still cached
    assert service.fetch("masjid-1", "2024-12-24", "WLY01").prayer_date == "2024-12-24"
    assert len(backend.calls) == 1


def test_unknown_zone_rejected(backend, clock) -> None:
    service = _service(backend, clock)

    with pytest.raises(ValueError):
        service.fetch("masjid-1", "2024-12-25", "XXX99")
    assert backend.calls == []


def test_lowercase_zone_accepted(backend, clock) -> None:
    service = _service(backend, clock)

    assert service.fetch("masjid-1", "2024-12-25", "wly01").zone == "WLY01"


def test_fetch_range_crosses_month_boundary(backend, clock) -> None:
    service = _service(backend, clock)

    schedules = service.fetch_range("masjid-1", "2024-12-30", "2025-01-02", "WLY01")

    assert [s.prayer_date for s in schedules] == ["2024-12-30", "2024-12-31", "2025-01-01", "2025-01-02"]
    assert sorted(backend.calls) == [("WLY01", 2024, 12), ("WLY01", 2025, 1)]


def test_fetch_range_with_workers_fetches_month_once(backend, clock) -> None:
    service = _service(backend, clock, max_workers=8)

    schedules = service.fetch_range("masjid-1", "2024-12-01", "2024-12-20", "WLY01")

    assert [s.prayer_date for s in schedules] == [d.isoformat() for d in date_range("2024-12-01", "2024-12-20")]
    assert len(backend.calls) == 1


def test_concurrent_fetches_share_one_upstream_call(backend, clock) -> None:
    service = _service(backend, clock)
    results = []

    def worker() -> None:
        results.append(service.fetch("masjid-1", "2024-12-25", "WLY01"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 8
    assert len({r.times()[0] for r in results}) == 1
    assert len(backend.calls) == 1
    assert service._month_locks == {}


def test_fetch_range_empty_when_end_before_start(backend, clock) -> None:
    service = _service(backend, clock)

    assert service.fetch_range("masjid-1", "2024-12-25", "2024-12-24", "WLY01") == []


def test_today_uses_malaysia_date(backend) -> None:
    from conftest import FakeClock

    # 17:30 UTC is already the next day in Kuala Lumpur
    clock = FakeClock(datetime(2024, 12, 24, 17, 30, tzinfo=timezone.utc))
    service = _service(backend, clock)

    assert service.today() == date(2024, 12, 25)
    assert service.fetch_today("masjid-1", "WLY01").prayer_date == "2024-12-25"


def test_fetch_month_returns_every_day(backend, clock) -> None:
    service = _service(backend, clock)

    schedules = service.fetch_month("masjid-1", "WLY01", 2024, 2)

    assert len(schedules) == 29
    assert len(backend.calls) == 1


def test_set_max_age(backend, clock) -> None:
    service = _service(backend, clock)
    service.fetch("masjid-1", "2024-12-25", "WLY01")

    service.set_max_age(5)
    clock.advance(6 * 60)
    service.fetch("masjid-1", "2024-12-25", "WLY01")

    assert len(backend.calls) == 2
    with pytest.raises(ValueError):
        service.set_max_age(-1)


def test_as_date() -> None:
    assert as_date("2024-12-25") == date(2024, 12, 25)
    assert as_date(datetime(2024, 12, 25, 8, 0)) == date(2024, 12, 25)
    with pytest.raises(ValueError):
        as_date("25/12/2024")


class RepeatedDayBackend(FakeBackend):
    def fetch_month(self, zone, year, month):
        schedules = super().fetch_month(zone, year, month)
        repeat = schedules[24]._replace(maghrib="19:40")
        return schedules + [repeat]


def test_repeated_day_keeps_first_entry(clock) -> None:
    service = _service(RepeatedDayBackend(), clock)

    first = service.fetch("masjid-1", "2024-12-25", "WLY01")
    again = service.fetch("masjid-1", "2024-12-25", "WLY01")

    assert first.maghrib == again.maghrib == "19:11"


def test_month_lock_released_after_failed_fetch(backend, clock) -> None:
    service = _service(backend, clock)
    backend.fail = True

    with pytest.raises(ServiceUnavailableError):
        service.fetch("masjid-1", "2024-12-25", "WLY01")

    assert service._month_locks == {}
