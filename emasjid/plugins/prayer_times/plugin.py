"""
Prayer times plugin: wires backend, cache, service, masjid directory and refresh task
from the `prayer_times` and `masjids` config sections.
"""
import logging
from typing import Any, Dict, Optional

from emasjid.core.plugin_base import PluginBase
from emasjid.plugins.prayer_times.backends import get_backend
from emasjid.plugins.prayer_times.masjids import MasjidDirectory
from emasjid.plugins.prayer_times.service import PrayerTimeService
from emasjid.plugins.prayer_times.task import PrayerTimesTask


class PrayerTimesPlugin(PluginBase):
    name = "prayer_times"

    def __init__(self, app, config: Dict[str, Any]):
        super().__init__(app, config)
        backend_type = self.config.get("backend", "waktusolat")
        self.backend = get_backend(backend_type, self.config, logger=logging.getLogger(f"{backend_type}_backend"))
        if self.backend is None:
            raise ValueError(f"Unknown prayer times backend: {backend_type}")
        self.service = PrayerTimeService(
            self.backend,
            max_age_minutes=self.config.get("cache_duration", PrayerTimeService.DEFAULT_CACHE_MINUTES),
            max_workers=self.config.get("max_workers", 1),
        )
        self.directory = MasjidDirectory(self._masjids_config(app))
        self.task: Optional[PrayerTimesTask] = None
        self.logger.info(f"{self.name} initialized with backend {backend_type} and {len(self.directory)} masjid(s)")

    @staticmethod
    def _masjids_config(app) -> Dict[str, Any]:
        data = getattr(getattr(app, "config", None), "data", None) or {}
        return data.get("masjids") or {}

    def start(self) -> None:
        """Register the daily refresh task with the app's task manager."""
        if not self.config.get("refresh_enabled", True) or not len(self.directory):
            self.logger.info("Prayer times refresh task disabled")
            return
        self.task = PrayerTimesTask(self.service, self.directory, self.config)
        self.app.task_manager.register(self.task)

    def handle_config_change(self, config_data: Dict[str, Any]) -> None:
        """Pick up a new cache duration and masjid list; backend changes need a restart."""
        super().handle_config_change(config_data)
        self.service.set_max_age(self.config.get("cache_duration", PrayerTimeService.DEFAULT_CACHE_MINUTES))
        self.directory = MasjidDirectory(config_data.get("masjids") or {})
        if self.task is not None:
            self.task.directory = self.directory
