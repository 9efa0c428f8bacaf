import logging
import sys
import threading
from typing import Any, Dict, Optional

from .config import Config
from .db import dispose_db, init_db
from .plugin_manager import PluginManager
from .task_manager import TaskManager

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'


def configure_logging(logging_config: Dict[str, Any]) -> None:
    """Replace root handlers with stdout plus an optional log file, both in LOG_FORMAT."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    level = str(logging_config.get("level", "INFO")).upper()
    root.setLevel(getattr(logging, level, logging.INFO))
    formatter = logging.Formatter(LOG_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if logging_config.get("file"):
        handlers.append(logging.FileHandler(logging_config["file"], encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)


class EMasjidApp:
    """Headless service: config, database, plugins, background tasks and the HTTP API."""

    def __init__(self, config_path: Optional[str] = None, watch_config: bool = True):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._stop_event = threading.Event()
        self.api_server = None

        self.config = Config(config_path=config_path, watch=watch_config)
        configure_logging(self.config.get_section("logging"))
        self.logger.info(f"eMasjid starting with config {self.config.config_file}")

        # Tables must exist before tasks read their schedules
        init_db(self.config.data)

        self.task_manager = TaskManager()
        self.plugin_manager = PluginManager()
        self.plugin_manager.create_plugins(self, self.config.data)
        self.config.register_change_callback(self.handle_config_change)

    def handle_config_change(self, config_data: Dict[str, Any]) -> None:
        level = str((config_data.get("logging") or {}).get("level", "INFO")).upper()
        logging.getLogger().setLevel(getattr(logging, level, logging.INFO))
        self.plugin_manager.handle_config_change(config_data)

    def get_plugin(self, name: str) -> Any:
        return self.plugin_manager.get(name)

    def run(self) -> None:
        """Start plugins and the API, then block until stop() or Ctrl+C."""
        from emasjid.api.server import run_api_server

        self.plugin_manager.start_all()
        self.api_server = run_api_server(self)
        try:
            while not self._stop_event.wait(1.0):
                pass
        except KeyboardInterrupt:
            self.logger.info("Interrupted, shutting down")
        finally:
            self.shutdown()

    def stop(self) -> None:
        self._stop_event.set()

    def shutdown(self) -> None:
        if self.api_server is not None:
            self.api_server.should_exit = True
            self.api_server = None
        self.task_manager.stop()
        self.plugin_manager.stop_all()
        self.config.cleanup()
        dispose_db()
        self.logger.info("eMasjid stopped")
