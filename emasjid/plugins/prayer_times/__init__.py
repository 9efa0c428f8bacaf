from .plugin import PrayerTimesPlugin


def register_plugins(plugin_manager):
    """Register Prayer Times plugin."""
    plugin_manager.register_plugin(PrayerTimesPlugin)
