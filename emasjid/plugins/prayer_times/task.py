"""
Background task: fetch today's prayer times for every configured masjid, save to DB,
persist next_run in DB.
"""
import logging
from typing import Any, Dict, Optional

from emasjid.core.task import BaseTask, TaskType, update_after_run
from emasjid.plugins.prayer_times.errors import ServiceUnavailableError
from emasjid.plugins.prayer_times.masjids import MasjidDirectory
from emasjid.plugins.prayer_times.schedule import PrayerSchedule
from emasjid.plugins.prayer_times.service import PrayerTimeService
from emasjid.plugins.prayer_times.store import save_schedule

logger = logging.getLogger(__name__)

TASK_NAME = "prayer_times.refresh"


class PrayerTimesTask(BaseTask):
    """Refresh today's schedule for each masjid; one masjid failing does not stop the rest."""

    def __init__(self, service: PrayerTimeService, directory: MasjidDirectory,
                 config: Optional[Dict[str, Any]] = None):
        schedule_type, schedule_config = self._schedule_from_config(config or {})
        super().__init__(TASK_NAME, schedule_type, schedule_config)
        self.service = service
        self.directory = directory

    def _schedule_from_config(self, config: Dict[str, Any]) -> tuple:
        schedule_time = config.get("schedule_time")
        if schedule_time:
            try:
                parts = str(schedule_time).strip().split(":")
                hour = int(parts[0]) if parts else 0
                minute = int(parts[1]) if len(parts) > 1 else 0
                return TaskType.DAILY, {"time": f"{hour:02d}:{minute:02d}"}
            except (ValueError, IndexError):
                logger.warning(f"Invalid schedule_time {schedule_time!r}, using 19:00")
                return TaskType.DAILY, {"time": "19:00"}
        interval = int(config.get("update_interval", 3600))
        return TaskType.INTERVAL_SECONDS, {"interval_seconds": interval}

    def run(self) -> Dict[str, PrayerSchedule]:
        saved: Dict[str, PrayerSchedule] = {}
        errors = []
        try:
            for masjid in self.directory.all():
                try:
                    schedule = self.service.fetch_today(masjid.masjid_id, masjid.zone)
                    schedule = self.directory.adjust(masjid, schedule)
                    save_schedule(schedule)
                    saved[masjid.masjid_id] = schedule
                    self.logger.info(
                        f"Prayer times for {masjid.masjid_id} ({masjid.zone}) saved for {schedule.prayer_date} "
                        f"[{schedule.source}]"
                    )
                except ServiceUnavailableError as e:
                    self.logger.error(f"Prayer times unavailable for {masjid.masjid_id}: {e}")
                    errors.append(f"{masjid.masjid_id}: {e}")
                except Exception as e:
                    self.logger.exception(f"Prayer times refresh failed for {masjid.masjid_id}")
                    errors.append(f"{masjid.masjid_id}: {e}")
        finally:
            update_after_run(self.task_name, error="; ".join(errors) or None)
        return saved
