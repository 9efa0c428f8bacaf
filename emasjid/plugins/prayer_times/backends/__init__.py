from .base import ScheduleBackend, pick_day
from .manual import ManualBackend
from .waktusolat import WaktuSolatBackend

__all__ = ["ScheduleBackend", "pick_day", "ManualBackend", "WaktuSolatBackend", "get_backend"]

_BACKENDS = {
    "waktusolat": WaktuSolatBackend,
    "jakim": WaktuSolatBackend,
    "manual": ManualBackend,
}


def get_backend(backend_type: str, config: dict, logger=None):
    """Factory: return backend instance for given type, or None if unknown."""
    cls = _BACKENDS.get((backend_type or "waktusolat").lower())
    if not cls:
        return None
    return cls(config, logger=logger)
