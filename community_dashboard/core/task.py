"""
Base task type and abstract BaseTask with next_run persistence in DB.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from queue import Queue
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import select

from community_dashboard.core.db import session_scope
from community_dashboard.core.models import TaskSchedule, utc_now

logger = logging.getLogger(__name__)


class TaskType:
    """Schedule kind for tasks."""
    DAILY = "daily"


def parse_hhmm(value: Any, default: str = "00:00") -> Tuple[int, int]:
    """Parse "HH:MM" into (hour, minute); malformed values fall back to default."""
    for candidate in (value, default):
        try:
            parts = str(candidate).strip().split(":")
            hour = int(parts[0])
            minute = int(parts[1]) if len(parts) > 1 else 0
            if 0 <= hour < 24 and 0 <= minute < 60:
                return hour, minute
        except (ValueError, IndexError, TypeError):
            continue
    return 0, 0


def _to_local(utc_naive: datetime, schedule_config: Dict[str, Any]) -> datetime:
    """Naive UTC -> aware wall-clock time in schedule_config["tz"] (machine local time when unset)."""
    aware = utc_naive.replace(tzinfo=timezone.utc)
    tz_name = schedule_config.get("tz")
    return aware.astimezone(ZoneInfo(tz_name)) if tz_name else aware.astimezone()


def _to_utc(local: datetime) -> datetime:
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def compute_next_run(
    schedule_type: str,
    schedule_config: Optional[Dict[str, Any]],
    last_run: Optional[datetime],
    now: Optional[datetime] = None,
) -> datetime:
    """Next run after last_run at schedule_config["time"] wall-clock time."""
    if last_run is None:
        last_run = now or utc_now()
    schedule_config = schedule_config or {}
    if schedule_type != TaskType.DAILY:
        logger.warning(f"Unknown schedule type {schedule_type!r}, running daily")

    hour, minute = parse_hhmm(schedule_config.get("time"))
    local_last = _to_local(last_run, schedule_config)
    next_run = local_last.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if next_run <= local_last:
        next_run += timedelta(days=1)
    return _to_utc(next_run)


def get_next_run_from_db(component_name: str) -> Optional[datetime]:
    """Read next_run_at for component from DB. None when no row or next_run_at is null (run immediately)."""
    try:
        with session_scope() as session:
            row = session.execute(
                select(TaskSchedule).where(TaskSchedule.component_name == component_name)
            ).scalars().first()
            if row and row.next_run_at is not None:
                return row.next_run_at
    except Exception as e:
        logger.debug(f"get_next_run_from_db {component_name}: {e}")
    return None


def upsert_task_schedule(
    component_name: str,
    schedule_type: str,
    schedule_config: Optional[Dict[str, Any]],
    next_run_at: Optional[datetime] = None,
) -> None:
    """Create or update the TaskSchedule row. An existing next_run_at is kept unless one is given."""
    with session_scope() as session:
        row = session.execute(
            select(TaskSchedule).where(TaskSchedule.component_name == component_name)
        ).scalars().first()
        now = utc_now()
        if row:
            changed = row.schedule_type != schedule_type or row.schedule_config != schedule_config
            if changed and row.last_run_at is not None:
                # Schedule changed in config: recompute from the last run
                row.next_run_at = compute_next_run(schedule_type, schedule_config, row.last_run_at)
            row.schedule_type = schedule_type
            row.schedule_config = schedule_config
            if next_run_at is not None:
                row.next_run_at = next_run_at
            row.updated_at = now
        else:
            session.add(TaskSchedule(
                component_name=component_name,
                schedule_type=schedule_type,
                schedule_config=schedule_config,
                next_run_at=next_run_at,
                created_at=now,
                updated_at=now,
            ))


def update_after_run(component_name: str, error: Optional[str] = None) -> None:
    """Record a run: last_run_at, last_error and the next_run_at derived from the schedule."""
    with session_scope() as session:
        row = session.execute(
            select(TaskSchedule).where(TaskSchedule.component_name == component_name)
        ).scalars().first()
        if not row:
            return
        now = utc_now()
        row.last_run_at = now
        row.last_error = error
        row.next_run_at = compute_next_run(row.schedule_type, row.schedule_config, now)
        row.updated_at = now


class BaseTask(ABC):
    """
    Abstract base for plugin background tasks. Subclasses implement run();
    the base computes next runs and persists them in DB.
    """

    name: str = ""

    def __init__(self, component_name: str, schedule_type: str, schedule_config: Optional[Dict[str, Any]] = None):
        self.component_name = component_name
        self.schedule_type = schedule_type
        self.schedule_config = schedule_config or {}
        self.logger = logging.getLogger(self.__class__.__name__)

    def get_next_run(self, last_run: Optional[datetime] = None) -> datetime:
        return compute_next_run(self.schedule_type, self.schedule_config, last_run)

    def ensure_scheduled(self) -> None:
        """Ensure the TaskSchedule row exists so the next run survives restarts."""
        upsert_task_schedule(self.component_name, self.schedule_type, self.schedule_config)

    def report(self, result_queue: Queue, result: Any) -> None:
        try:
            result_queue.put((self.component_name, result))
        except Exception as e:
            self.logger.debug(f"Could not report result for {self.component_name}: {e}")

    @abstractmethod
    def run(
        self,
        config: Dict[str, Any],
        result_queue: Queue,
        **kwargs: Any,
    ) -> None:
        """
        Execute the task: do the work, call update_after_run(self.component_name), then report a result.
        """
        pass
