from __future__ import annotations

import threading
from datetime import date, datetime

from emasjid.core.models import get_all_task_schedules
from emasjid.core.task import BaseTask, TaskType, compute_next_run, get_next_run_from_db, update_after_run
from emasjid.core.task_manager import TaskManager
from emasjid.plugins.prayer_times.errors import TransportError
from emasjid.plugins.prayer_times.masjids import MasjidDirectory
from emasjid.plugins.prayer_times.service import PrayerTimeService
from emasjid.plugins.prayer_times.store import get_schedule_record
from emasjid.plugins.prayer_times import task as task_module
from emasjid.plugins.prayer_times.task import TASK_NAME, PrayerTimesTask

from conftest import FakeBackend


def test_compute_next_run_daily() -> None:
    last = datetime(2024, 12, 25, 5, 0)

    assert compute_next_run(TaskType.DAILY, {"time": "16:30"}, last) == datetime(2024, 12, 25, 16, 30)
    assert compute_next_run(TaskType.DAILY, {"time": "03:00"}, last) == datetime(2024, 12, 26, 3, 0)


def test_compute_next_run_other_types() -> None:
    last = datetime(2024, 12, 25, 5, 0)

    assert compute_next_run(TaskType.HOURLY, {}, last) == datetime(2024, 12, 25, 6, 0)
    assert compute_next_run(TaskType.INTERVAL_SECONDS, {"interval_seconds": 90}, last) == datetime(2024, 12, 25, 5, 1, 30)
    assert compute_next_run(TaskType.MONTHLY, {"day": 1, "time": "00:00"}, last) == datetime(2025, 1, 1, 0, 0)
    assert compute_next_run("unknown", None, last) == datetime(2024, 12, 26, 5, 0)


class ZoneFailingBackend(FakeBackend):
    def fetch_month(self, zone, year, month):
        if zone == "SGR01":
            self.calls.append((zone, year, month))
            raise TransportError("HTTP 502: Bad Gateway")
        return super().fetch_month(zone, year, month)


def _directory() -> MasjidDirectory:
    return MasjidDirectory({
        "masjid-negara": {"name": "Masjid Negara", "zone": "WLY01", "adjustments": {"isha": 3}},
        "al-hidayah": {"name": "Masjid Al-Hidayah", "state": "Selangor", "city": "Shah Alam"},
    })


def test_task_schedule_from_config() -> None:
    service = PrayerTimeService(FakeBackend())

    daily = PrayerTimesTask(service, _directory(), {"schedule_time": "7:5"})
    broken = PrayerTimesTask(service, _directory(), {"schedule_time": "soon"})
    interval = PrayerTimesTask(service, _directory(), {"update_interval": 600})

    assert (daily.schedule_type, daily.schedule_config) == (TaskType.DAILY, {"time": "07:05"})
    assert broken.schedule_config == {"time": "19:00"}
    assert (interval.schedule_type, interval.schedule_config) == (TaskType.INTERVAL_SECONDS, {"interval_seconds": 600})


def test_run_saves_each_masjid_and_records_errors(sqlite_db, clock) -> None:
    service = PrayerTimeService(ZoneFailingBackend(), clock=clock)
    task = PrayerTimesTask(service, _directory(), {"schedule_time": "16:30"})
    task.ensure_scheduled()

    saved = task.run()

    assert list(saved) == ["masjid-negara"]
    assert saved["masjid-negara"].isha == "20:28"
    record = get_schedule_record("masjid-negara", date(2024, 12, 25))
    assert record.data["isha"] == "20:28"
    assert get_schedule_record("al-hidayah", date(2024, 12, 25)) is None

    row = next(r for r in get_all_task_schedules() if r["task_name"] == TASK_NAME)
    assert row["last_run_at"] is not None
    assert "al-hidayah" in row["last_error"]
    assert get_next_run_from_db(TASK_NAME) is not None


class RecordingTask(BaseTask):
    def __init__(self) -> None:
        super().__init__("test.recording", TaskType.INTERVAL_SECONDS, {"interval_seconds": 3600})
        self.ran = threading.Event()

    def run(self):
        self.ran.set()
        update_after_run(self.task_name)
        return "done"


def test_task_manager_runs_new_task_immediately(sqlite_db) -> None:
    manager = TaskManager()
    task = RecordingTask()
    try:
        manager.register(task)
        assert task.ran.wait(5)
        assert manager.run_now("test.recording") == "done"
        assert manager.run_now("missing") is None
        assert [t["name"] for t in manager.get_active_timers()] == ["test.recording"]
    finally:
        manager.stop()


def test_directory_drops_bad_adjustments() -> None:
    directory = MasjidDirectory({
        "typo": {"zone": "WLY01", "adjustments": {"subuh": 2, "isha": "late", "fajr": 1}},
        "not-a-mapping": {"zone": "WLY01", "adjustments": [2]},
    })

    assert directory.get("typo").adjustments == {"fajr": 1}
    assert directory.get("not-a-mapping").adjustments == {}


def test_run_with_misconfigured_masjid_saves_the_rest(sqlite_db, clock) -> None:
    directory = MasjidDirectory({
        "typo": {"name": "Typo", "zone": "WLY01", "adjustments": {"subuh": 2}},
        "masjid-negara": {"name": "Masjid Negara", "zone": "WLY01"},
    })
    task = PrayerTimesTask(PrayerTimeService(FakeBackend(), clock=clock), directory, {"schedule_time": "16:30"})
    task.ensure_scheduled()

    saved = task.run()

    assert sorted(saved) == ["masjid-negara", "typo"]
    assert saved["typo"].fajr == "05:57"
    assert get_schedule_record("masjid-negara", date(2024, 12, 25)) is not None
    assert get_next_run_from_db(TASK_NAME) is not None


def test_run_survives_save_errors_and_reschedules(sqlite_db, clock, monkeypatch) -> None:
    def save(schedule):
        if schedule.masjid_id == "masjid-negara":
            raise RuntimeError("database is locked")
        real_save(schedule)

    real_save = task_module.save_schedule
    monkeypatch.setattr(task_module, "save_schedule", save)
    task = PrayerTimesTask(PrayerTimeService(FakeBackend(), clock=clock), _directory(), {"schedule_time": "16:30"})
    task.ensure_scheduled()

    saved = task.run()

    assert list(saved) == ["al-hidayah"]
    row = next(r for r in get_all_task_schedules() if r["task_name"] == TASK_NAME)
    assert "database is locked" in row["last_error"]
    assert get_next_run_from_db(TASK_NAME) is not None
