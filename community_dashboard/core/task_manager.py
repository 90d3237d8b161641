"""
Single place for scheduling: in-memory timers for DB-backed registered tasks.
"""
import logging
from datetime import datetime, timezone
from queue import Queue
from threading import Lock, Timer
from typing import Any, Callable, Dict, List, Optional

from community_dashboard.core.models import utc_now
from community_dashboard.core.task import get_next_run_from_db


class TaskManager:
    def __init__(self):
        self.tasks: Dict[str, Timer] = {}
        self.result_queue = Queue()
        self.logger = logging.getLogger("TaskManager")
        self._registered_tasks: Dict[str, Callable[..., None]] = {}
        self._registered_config: Dict[str, tuple] = {}  # component_name -> (config, config_data)
        self._lock = Lock()
        self._stopped = False

    def schedule_task(self, name: str, callback: Callable, delay: int) -> None:
        """Run callback once after delay seconds, replacing any pending timer of the same name."""
        with self._lock:
            if self._stopped:
                return
            self.logger.info(f"Scheduling task {name} with delay {delay} seconds")
            if name in self.tasks:
                self.tasks[name].cancel()

            scheduled_time = datetime.now().timestamp() + delay
            timer = Timer(delay, self._run_task, args=(name, callback))
            timer.daemon = True
            timer.scheduled_time = scheduled_time
            self.tasks[name] = timer
            timer.start()
            self.logger.info(f"Timer started for {name}, scheduled for {datetime.fromtimestamp(scheduled_time)}")

    def _run_task(self, name: str, callback: Callable) -> None:
        try:
            callback()
        except Exception as e:
            self.logger.error(f"Error running task {name}: {e}")

    def register_task(self, component_name: str, runnable: Callable[..., None]) -> None:
        """Register a runnable for a component. runnable(config, result_queue, **kwargs) does the work and updates next_run in DB."""
        self._registered_tasks[component_name] = runnable
        self.logger.debug(f"Registered task for component: {component_name}")

    def unregister_task(self, component_name: str) -> None:
        self._registered_tasks.pop(component_name, None)
        self._registered_config.pop(component_name, None)
        with self._lock:
            timer = self.tasks.pop(component_name, None)
        if timer:
            timer.cancel()

    def schedule_registered_task(
        self,
        component_name: str,
        config: Dict[str, Any],
        config_data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Schedule a registered task at next_run from DB (immediately if null or past due).
        After running, the runnable updates next_run in DB and we reschedule for it.
        """
        if component_name not in self._registered_tasks:
            self.logger.warning(f"No task registered for component: {component_name}")
            return
        self._registered_config[component_name] = (config, config_data)
        next_run = get_next_run_from_db(component_name)
        if next_run is None:
            delay = 0
        else:
            delay = max(0, int((next_run - utc_now()).total_seconds()))
        callback = lambda: self._run_registered_and_reschedule(component_name)
        self.schedule_task(component_name, callback, delay)

    def _run_registered_and_reschedule(self, component_name: str) -> None:
        self.run_task_now(component_name)
        config, config_data = self._registered_config.get(component_name, (None, None))
        if config is not None:
            self.schedule_registered_task(component_name, config, config_data)

    def run_task_now(
        self,
        component_name: str,
        config: Optional[Dict[str, Any]] = None,
        config_data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Run a registered task once immediately (e.g. manual scan). Puts result on result_queue."""
        runnable = self._registered_tasks.get(component_name)
        if not runnable:
            self.logger.warning(f"No task registered for component: {component_name}")
            return
        if config is None:
            config, config_data = self._registered_config.get(component_name, (None, None))
        if config is None:
            return
        try:
            runnable(config, self.result_queue, config_data=config_data)
        except Exception as e:
            self.logger.exception(f"Registered task {component_name} failed: {e}")

    def get_active_timers(self) -> List[Dict[str, Any]]:
        """Return active timer names and their next run time (for API)."""
        result = []
        for name, timer in list(self.tasks.items()):
            if getattr(timer, "scheduled_time", None) is not None:
                next_run = datetime.fromtimestamp(timer.scheduled_time, tz=timezone.utc)
                result.append({"name": name, "next_run_at": next_run})
        return result

    def stop(self) -> None:
        """Stop all scheduled tasks."""
        with self._lock:
            self._stopped = True
            for task in self.tasks.values():
                task.cancel()
