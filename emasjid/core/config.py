"""
YAML configuration: built-in defaults, .env loading, $VAR expansion and hot reload via watchdog.
"""
import logging
import os
import re
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import yaml
from watchdog.events import FileModifiedEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

ConfigCallback = Callable[[Dict[str, Any]], None]

_ENV_LINE = re.compile(r"^(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$")
_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def load_env_file(candidates: Iterable[Path]) -> Optional[Path]:
    """Export KEY=VALUE lines from the first existing candidate. Variables already set win."""
    env_file = next((p for p in candidates if p.is_file()), None)
    if env_file is None:
        logger.debug("No .env file found")
        return None
    try:
        lines = env_file.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        logger.warning(f"Could not read {env_file}: {e}")
        return None
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        match = _ENV_LINE.match(line)
        if not match:
            continue
        key, value = match.groups()
        os.environ.setdefault(key, value.strip().strip("'\""))
    logger.info(f"Loaded environment from {env_file}")
    return env_file


def expand_env(value: Any) -> Any:
    """Replace $VAR and ${VAR} inside strings, recursively. Unset names are left as written."""
    if isinstance(value, dict):
        return {k: expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env(v) for v in value]
    if isinstance(value, str) and "$" in value:
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1) or m.group(2), m.group(0)), value)
    return value


def merge_defaults(defaults: Dict[str, Any], loaded: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay loaded on defaults. Nested sections merge; an empty section keeps its defaults."""
    merged = dict(defaults)
    for key, value in loaded.items():
        base = merged.get(key)
        if isinstance(base, dict) and value is None:
            continue
        if isinstance(base, dict) and isinstance(value, dict):
            merged[key] = merge_defaults(base, value)
        else:
            merged[key] = value
    return merged


def diff_config(old: Dict[str, Any], new: Dict[str, Any], prefix: str = "") -> List[str]:
    """Human readable list of changed, added and removed keys (dotted paths)."""
    changes = []
    for key in sorted(set(old) | set(new), key=str):
        path = f"{prefix}.{key}" if prefix else str(key)
        if key not in new:
            changes.append(f"removed {path}")
        elif key not in old:
            changes.append(f"added {path}")
        elif isinstance(old[key], dict) and isinstance(new[key], dict):
            changes.extend(diff_config(old[key], new[key], path))
        elif old[key] != new[key]:
            changes.append(f"changed {path}: {old[key]!r} -> {new[key]!r}")
    return changes


class ConfigChangeHandler(FileSystemEventHandler):
    """Reloads the config when its file is written. Events within `cooldown` seconds collapse into one."""

    def __init__(self, config: "Config", cooldown: float = 1.0):
        self.config = config
        self.cooldown = cooldown
        self._last_reload: Optional[float] = None

    def on_modified(self, event):
        if not isinstance(event, FileModifiedEvent):
            return
        if Path(event.src_path).resolve() != self.config.config_file:
            return
        now = time.monotonic()
        if self._last_reload is not None and now - self._last_reload < self.cooldown:
            return
        self._last_reload = now
        self.config.reload()


class Config:
    """Config file wrapper. `data` always contains every default section."""

    def __init__(self, config_path: Optional[str] = None, watch: bool = False):
        self.config_file = Path(config_path or "config.yaml").resolve()
        self.config_dir = self.config_file.parent
        self.change_callbacks: List[ConfigCallback] = []
        self.observer: Optional[Observer] = None
        self._reload_lock = threading.Lock()

        load_env_file([self.config_dir / ".env", Path.cwd() / ".env"])
        self._ensure_config_exists()

        self.data: Dict[str, Any] = self._read()
        if self.data is None:
            logger.info("Using default configuration")
            self.data = self.default_config()

        if watch:
            self.start_watching()

    @staticmethod
    def default_config() -> Dict[str, Any]:
        return {
            "logging": {
                "level": "INFO",
                "file": "emasjid.log",
            },
            "database": {
                "path": "~/.emasjid/emasjid.db",
            },
            "api": {
                "enabled": False,
                "host": "127.0.0.1",
                "port": 8765,
            },
            "prayer_times": {
                "backend": "waktusolat",
                "timeout": 10,  # seconds
                "cache_duration": 60,  # minutes
                "max_workers": 4,
                "schedule_time": "16:30",  # UTC, 00:30 in Malaysia
                "time_format": "24-hour",
                "language": "ms",
            },
            "masjids": {},
        }

    def _ensure_config_exists(self) -> None:
        if self.config_file.exists():
            return
        self.config_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Writing default config to {self.config_file}")
        self.config_file.write_text(yaml.safe_dump(self.default_config(), sort_keys=False), encoding="utf-8")

    def _read(self) -> Optional[Dict[str, Any]]:
        """Parse the file into a full config dict; None when the file is unusable."""
        try:
            with open(self.config_file, encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
            if not isinstance(loaded, dict):
                raise ValueError("root of the config file must be a mapping")
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Error loading config {self.config_file}: {e}")
            return None

        data = merge_defaults(self.default_config(), expand_env(loaded))
        log_file = (data.get("logging") or {}).get("file")
        if log_file:
            data["logging"]["file"] = os.path.expanduser(log_file)
        return data

    def get_section(self, name: str) -> Dict[str, Any]:
        """Config section as a dict (empty when missing)"""
        section = self.data.get(name)
        return section if isinstance(section, dict) else {}

    def register_change_callback(self, callback: ConfigCallback) -> None:
        self.change_callbacks.append(callback)

    def reload(self) -> bool:
        """Re-read the file and notify callbacks. A broken file keeps the current data and returns False."""
        if not self._reload_lock.acquire(blocking=False):
            return False
        try:
            logger.info("Config file change detected - reloading configuration")
            new_data = self._read()
            if new_data is None:
                logger.info("Keeping previous configuration")
                return False
            for change in diff_config(self.data, new_data):
                logger.info(f"Config {change}")
            self.data = new_data
            for callback in list(self.change_callbacks):
                try:
                    callback(self.data)
                except Exception as e:
                    logger.exception(f"Error in config change callback: {e}")
            return True
        finally:
            self._reload_lock.release()

    def start_watching(self) -> None:
        if self.observer is not None:
            return
        self.observer = Observer()
        self.observer.schedule(ConfigChangeHandler(self), str(self.config_dir), recursive=False)
        self.observer.start()
        logger.info(f"Watching {self.config_dir} for config changes")

    def cleanup(self) -> None:
        """Stop the file observer"""
        if self.observer is not None:
            self.observer.stop()
            self.observer.join()
            self.observer = None
