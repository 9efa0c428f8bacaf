from __future__ import annotations

from types import SimpleNamespace

import pytest

from emasjid import main
from emasjid.core.plugin_manager import PluginManager
from emasjid.plugins.prayer_times import PrayerTimesPlugin
from emasjid.plugins.prayer_times.backends import ManualBackend
from emasjid.plugins.prayer_times.task import TASK_NAME

from conftest import WLY01_TIMES

MANUAL_CONFIG = {"backend": "manual", "manual_times": WLY01_TIMES, "cache_duration": 30}


class FakeTaskManager:
    def __init__(self) -> None:
        self.registered = []

    def register(self, task) -> None:
        self.registered.append(task)


def _app(masjids: dict | None = None, prayer_times: dict | None = None):
    app = SimpleNamespace(
        config=SimpleNamespace(data={"masjids": masjids or {}, "prayer_times": prayer_times or MANUAL_CONFIG}),
        task_manager=FakeTaskManager(),
    )
    app.get_plugin = lambda name: app.plugins.get(name)
    return app


def test_plugin_is_discovered() -> None:
    manager = PluginManager()

    assert manager.plugin_classes["prayer_times"] is PrayerTimesPlugin


def test_plugin_wires_backend_service_and_directory() -> None:
    app = _app({"masjid-negara": {"zone": "WLY01"}})

    plugin = PrayerTimesPlugin(app, MANUAL_CONFIG)

    assert isinstance(plugin.backend, ManualBackend)
    assert plugin.service.max_age == 30 * 60
    assert plugin.directory.get("masjid-negara").zone == "WLY01"


def test_unknown_backend_rejected() -> None:
    with pytest.raises(ValueError):
        PrayerTimesPlugin(_app(), {"backend": "aladhan"})


def test_start_registers_refresh_task() -> None:
    app = _app({"masjid-negara": {"zone": "WLY01"}})
    plugin = PrayerTimesPlugin(app, MANUAL_CONFIG)

    plugin.start()

    assert [t.task_name for t in app.task_manager.registered] == [TASK_NAME]


def test_start_without_masjids_skips_task() -> None:
    app = _app()
    PrayerTimesPlugin(app, MANUAL_CONFIG).start()

    assert app.task_manager.registered == []


def test_config_change_updates_cache_and_masjids() -> None:
    app = _app({"masjid-negara": {"zone": "WLY01"}})
    plugin = PrayerTimesPlugin(app, MANUAL_CONFIG)
    plugin.start()

    plugin.handle_config_change({
        "prayer_times": dict(MANUAL_CONFIG, cache_duration=5),
        "masjids": {"al-hidayah": {"state": "Selangor", "city": "Klang"}},
    })

    assert plugin.service.max_age == 5 * 60
    assert plugin.directory.get("masjid-negara") is None
    assert plugin.task.directory.get("al-hidayah").zone == "SGR03"


def test_print_today(capsys, clock) -> None:
    app = _app({"masjid-negara": {"name": "Masjid Negara", "zone": "WLY01"}})
    plugin = PrayerTimesPlugin(app, dict(MANUAL_CONFIG, time_format="12-hour"))
    plugin.service.clock = clock
    app.plugins = {"prayer_times": plugin}

    assert main.print_today(app, "masjid-negara") == 0
    out = capsys.readouterr().out
    assert "Masjid Negara (WLY01) 2024-12-25 [manual]" in out
    assert "Maghrib" in out and "7:11 PM" in out

    assert main.print_today(app, "nowhere") == 2
