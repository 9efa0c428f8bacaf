import argparse
import logging
import sys

from emasjid.core.app import EMasjidApp, LOG_FORMAT
from emasjid.plugins.prayer_times.errors import ServiceUnavailableError
from emasjid.plugins.prayer_times.schedule import format_time, prayer_name
from emasjid.plugins.prayer_times.store import get_latest_schedule_record, record_to_schedule


def setup_basic_logging():
    """Setup basic stdout logging before config is loaded"""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.DEBUG)
        logging.debug("Basic logging initialized")


def print_today(app: EMasjidApp, masjid_id: str) -> int:
    """Print today's schedule for one masjid; falls back to the last saved one. Returns exit code."""
    plugin = app.get_plugin("prayer_times")
    if plugin is None:
        print("prayer_times plugin is not enabled", file=sys.stderr)
        return 2
    masjid = plugin.directory.get(masjid_id)
    if masjid is None:
        print(f"Unknown masjid: {masjid_id}", file=sys.stderr)
        return 2

    try:
        schedule = plugin.directory.adjust(masjid, plugin.service.fetch_today(masjid.masjid_id, masjid.zone))
    except ServiceUnavailableError as e:
        record = get_latest_schedule_record(masjid.masjid_id)
        if record is None:
            print(str(e), file=sys.stderr)
            return 1
        logging.warning(f"Live prayer times unavailable, showing saved schedule: {e}")
        schedule = record_to_schedule(record)

    time_format = plugin.config.get("time_format", "24-hour")
    language = plugin.config.get("language", "ms")
    print(f"{masjid.name} ({schedule.zone}) {schedule.prayer_date} [{schedule.source}]")
    for name, hhmm in schedule.times():
        print(f"  {prayer_name(name, language):<10} {format_time(hhmm, time_format)}")
    return 0


if __name__ == "__main__":
    setup_basic_logging()

    parser = argparse.ArgumentParser(description='Open eMasjid prayer times service')
    parser.add_argument('--config', help='Path to config file (default: ./config.yaml)')
    parser.add_argument('--once', metavar='MASJID_ID',
                        help="Print today's prayer times for one masjid and exit")

    args = parser.parse_args()
    config_path = args.config if args.config else "config.yaml"

    if args.once:
        app = EMasjidApp(config_path=config_path, watch_config=False)
        try:
            code = print_today(app, args.once)
        finally:
            app.shutdown()
        sys.exit(code)

    app = EMasjidApp(config_path=config_path)
    app.run()
