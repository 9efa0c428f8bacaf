"""
Core tables. TaskSchedule keeps each background task's next run across restarts.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import JSON, Column, DateTime, String, Text, select

from emasjid.core.db import Base, session_scope


def utc_now() -> datetime:
    """Naive UTC; every DateTime column here stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TaskSchedule(Base):
    __tablename__ = "task_schedules"

    task_name = Column(String(255), primary_key=True)
    schedule_type = Column(String(64), nullable=False)  # see core.task.TaskType
    schedule_config = Column(JSON, nullable=True)  # {"time": "16:30"} or {"interval_seconds": 3600}
    next_run_at = Column(DateTime, nullable=True)  # NULL means due now
    last_run_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_name": self.task_name,
            "schedule_type": self.schedule_type,
            "schedule_config": self.schedule_config,
            "next_run_at": self.next_run_at,
            "last_run_at": self.last_run_at,
            "last_error": self.last_error,
        }


def get_all_task_schedules() -> List[Dict[str, Any]]:
    """Every TaskSchedule row as a dict, ordered by task name."""
    with session_scope() as session:
        rows = session.execute(select(TaskSchedule).order_by(TaskSchedule.task_name)).scalars().all()
        return [row.to_dict() for row in rows]
