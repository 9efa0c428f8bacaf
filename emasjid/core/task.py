"""
Background task base class and schedule arithmetic. Next-run times live in the
task_schedules table so a restart picks up where the last process stopped.
"""
import calendar
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from emasjid.core.db import session_scope
from emasjid.core.models import TaskSchedule, utc_now

logger = logging.getLogger(__name__)


class TaskType:
    DAILY = "daily"
    HOURLY = "hourly"
    INTERVAL_SECONDS = "interval_seconds"
    MONTHLY = "monthly"


def _parse_hhmm(value: Any) -> Tuple[int, int]:
    hour, _, minute = str(value).strip().partition(":")
    return int(hour or 0), int(minute or 0)


def _next_daily(config: Dict[str, Any], last_run: datetime) -> datetime:
    hour, minute = _parse_hhmm(config.get("time", "00:00"))
    candidate = last_run.replace(hour=hour, minute=minute, second=0, microsecond=0)
    return candidate if candidate > last_run else candidate + timedelta(days=1)


def _next_hourly(config: Dict[str, Any], last_run: datetime) -> datetime:
    return last_run + timedelta(hours=1)


def _next_interval(config: Dict[str, Any], last_run: datetime) -> datetime:
    return last_run + timedelta(seconds=int(config.get("interval_seconds", 86400)))


def _next_monthly(config: Dict[str, Any], last_run: datetime) -> datetime:
    """Same day/time each month; day is clamped to the month's length."""
    hour, minute = _parse_hhmm(config.get("time", "00:00"))
    day = int(config.get("day", 1))
    year, month = last_run.year, last_run.month
    for _ in range(2):
        last_day = calendar.monthrange(year, month)[1]
        candidate = datetime(year, month, min(day, last_day), hour, minute)
        if candidate > last_run:
            return candidate
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return candidate


_NEXT_RUN: Dict[str, Callable[[Dict[str, Any], datetime], datetime]] = {
    TaskType.DAILY: _next_daily,
    TaskType.HOURLY: _next_hourly,
    TaskType.INTERVAL_SECONDS: _next_interval,
    TaskType.MONTHLY: _next_monthly,
}


def compute_next_run(
    schedule_type: str,
    schedule_config: Optional[Dict[str, Any]],
    last_run: Optional[datetime] = None,
) -> datetime:
    """Next run (naive UTC) after last_run. Unknown schedule types run again a day later."""
    last_run = last_run or utc_now()
    step = _NEXT_RUN.get(schedule_type)
    if step is None:
        return last_run + timedelta(days=1)
    return step(schedule_config or {}, last_run)


def _schedule_row(session: Session, task_name: str) -> Optional[TaskSchedule]:
    return session.execute(
        select(TaskSchedule).where(TaskSchedule.task_name == task_name)
    ).scalars().first()


def get_next_run_from_db(task_name: str) -> Optional[datetime]:
    """Stored next_run_at; None when the task has never run or the DB is unreachable."""
    try:
        with session_scope() as session:
            row = _schedule_row(session, task_name)
            return row.next_run_at if row else None
    except Exception as e:
        logger.warning(f"Could not read schedule for {task_name}: {e}")
        return None


def upsert_task_schedule(
    task_name: str,
    schedule_type: str,
    schedule_config: Optional[Dict[str, Any]],
    next_run_at: Optional[datetime] = None,
) -> None:
    """Insert or update the task's row. Existing next_run_at is kept unless a new one is given."""
    with session_scope() as session:
        row = _schedule_row(session, task_name)
        if row is None:
            row = TaskSchedule(task_name=task_name)
            session.add(row)
        row.schedule_type = schedule_type
        row.schedule_config = schedule_config
        if next_run_at is not None:
            row.next_run_at = next_run_at


def update_after_run(task_name: str, error: Optional[str] = None) -> None:
    """Record a finished run and compute the following one."""
    with session_scope() as session:
        row = _schedule_row(session, task_name)
        if row is None:
            logger.warning(f"No schedule row for {task_name}; run not recorded")
            return
        finished = utc_now()
        row.last_run_at = finished
        row.last_error = error
        row.next_run_at = compute_next_run(row.schedule_type, row.schedule_config, finished)


class BaseTask(ABC):
    """A named unit of background work run by TaskManager on its schedule."""

    def __init__(self, task_name: str, schedule_type: str, schedule_config: Optional[Dict[str, Any]] = None):
        self.task_name = task_name
        self.schedule_type = schedule_type
        self.schedule_config = schedule_config or {}
        self.logger = logging.getLogger(self.__class__.__name__)

    def ensure_scheduled(self, next_run_at: Optional[datetime] = None) -> None:
        upsert_task_schedule(self.task_name, self.schedule_type, self.schedule_config, next_run_at=next_run_at)

    @abstractmethod
    def run(self) -> Any:
        """Do the work, then call update_after_run(self.task_name)."""
