"""
Background task: fetch prayer times from backend, save via service, persist next_run in DB.
"""
from typing import Any, Dict, Optional

from community_dashboard.core.config import configured_location, local_today
from community_dashboard.core.task import BaseTask, TaskType, parse_hhmm, update_after_run
from community_dashboard.plugins.prayer.prayer_base import AladhanBackend
from community_dashboard.plugins.prayer.service import COMPONENT_NAME, save_prayer_times


class PrayerTimesTask(BaseTask):
    """Fetch today's prayer times and Hijri label, save to DB, update next_run."""

    name = COMPONENT_NAME

    def __init__(self, component_name: str, config: Dict[str, Any], config_data: Optional[Dict[str, Any]] = None):
        hour, minute = parse_hhmm(config.get("schedule_time"), "00:05")
        schedule_config = {"time": f"{hour:02d}:{minute:02d}"}
        tz_name = (config_data or {}).get("timezone")
        if tz_name:
            schedule_config["tz"] = tz_name
        super().__init__(component_name, TaskType.DAILY, schedule_config)
        self.config = config

    def run(
        self,
        config: Dict[str, Any],
        result_queue: Any,
        config_data: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> None:
        backend = self._create_backend(config, config_data)
        if not backend:
            self.report(result_queue, None)
            return
        today = local_today(config_data)
        prayer_day = backend.get_prayer_day(today, force_fetch=True)
        if not prayer_day or not prayer_day.timings:
            update_after_run(self.component_name, error="No prayer times returned")
            self.report(result_queue, None)
            return
        save_prayer_times(self.component_name, today, prayer_day.timings, prayer_day.hijri_label)
        self.logger.info(f"Prayer Times: saved to DB for {today}")
        update_after_run(self.component_name)
        self.report(result_queue, prayer_day)

    def _create_backend(self, config: Dict[str, Any], config_data: Optional[Dict[str, Any]] = None) -> Optional[AladhanBackend]:
        backend_type = config.get("backend", "aladhan")
        if backend_type != "aladhan":
            self.logger.warning(f"Prayer task only supports aladhan backend, got {backend_type}")
            return None
        cfg = dict(config)
        cfg.setdefault("cache_dir", (config_data or {}).get("cache", {}).get("directory"))
        for key, value in configured_location(config_data).items():
            cfg.setdefault(key, value)
        return AladhanBackend(cfg)
