"""
Single place for scheduling: threading timers driven by DB-backed next_run times.
"""
import logging
import threading
from datetime import datetime, timezone
from threading import Timer
from typing import Any, Dict, List

from emasjid.core.models import utc_now
from emasjid.core.task import BaseTask, get_next_run_from_db


class TaskManager:
    def __init__(self):
        self.timers: Dict[str, Timer] = {}
        self.tasks: Dict[str, BaseTask] = {}
        self.logger = logging.getLogger("TaskManager")
        self._lock = threading.Lock()
        self._stopped = False

    def register(self, task: BaseTask) -> None:
        """Register a task and schedule it for its next_run from DB (or immediately)."""
        self.tasks[task.task_name] = task
        task.ensure_scheduled()
        self.logger.debug(f"Registered task: {task.task_name}")
        self.schedule(task.task_name)

    def schedule(self, task_name: str) -> None:
        """Schedule a registered task at next_run from DB; run immediately if past due or unknown."""
        next_run = get_next_run_from_db(task_name)
        if next_run is None:
            delay = 0
        else:
            delay = max(0, int((next_run - utc_now()).total_seconds()))
        self._start_timer(task_name, delay)

    def _start_timer(self, task_name: str, delay: int) -> None:
        with self._lock:
            if self._stopped:
                return
            existing = self.timers.get(task_name)
            if existing is not None:
                self.logger.info(f"Cancelling existing timer for {task_name}")
                existing.cancel()
            scheduled_time = datetime.now(timezone.utc).timestamp() + delay
            timer = Timer(delay, self._run_and_reschedule, args=(task_name,))
            timer.daemon = True
            timer.scheduled_time = scheduled_time
            self.timers[task_name] = timer
            timer.start()
        self.logger.info(
            f"Timer started for {task_name}, scheduled for {datetime.fromtimestamp(scheduled_time)}"
        )

    def _run_and_reschedule(self, task_name: str) -> None:
        """Run the registered task then reschedule for next_run from DB."""
        self.run_now(task_name)
        self.schedule(task_name)

    def run_now(self, task_name: str) -> Any:
        """Run a registered task once immediately (e.g. manual refresh)."""
        task = self.tasks.get(task_name)
        if not task:
            self.logger.warning(f"No task registered with name: {task_name}")
            return None
        try:
            return task.run()
        except Exception as e:
            self.logger.exception(f"Task {task_name} failed: {e}")
            return None

    def get_active_timers(self) -> List[Dict[str, Any]]:
        """Return list of active timer names and their next run time (for API)."""
        result = []
        for name, timer in self.timers.items():
            if getattr(timer, "scheduled_time", None) is not None:
                next_run = datetime.fromtimestamp(timer.scheduled_time, tz=timezone.utc)
                result.append({"name": name, "next_run_at": next_run})
        return result

    def stop(self) -> None:
        """Stop all scheduled timers."""
        with self._lock:
            self._stopped = True
            for timer in self.timers.values():
                timer.cancel()
