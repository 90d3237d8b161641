"""
Background task: once a day, scan due schedules into notifications and upsert the daily summary.
"""
from typing import Any, Dict, Optional

from community_dashboard.core.config import make_evaluator
from community_dashboard.core.task import BaseTask, TaskType, parse_hhmm, update_after_run
from community_dashboard.plugins.schedules.service import DEFAULT_SUMMARY_THRESHOLD, run_daily_summary


class DailySummaryTask(BaseTask):
    """Run the notification scan and daily summary at summary_time (default 09:45)."""

    name = "Schedules"

    def __init__(self, component_name: str, config: Dict[str, Any], config_data: Optional[Dict[str, Any]] = None):
        hour, minute = parse_hhmm(config.get("summary_time"), "09:45")
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
        evaluator = make_evaluator(config_data)
        threshold = int(config.get("threshold", DEFAULT_SUMMARY_THRESHOLD))
        try:
            result = run_daily_summary(evaluator, threshold)
        except Exception as e:
            self.logger.exception(f"Daily summary failed: {e}")
            update_after_run(self.component_name, error=str(e))
            self.report(result_queue, None)
            return
        self.logger.info(f"Daily summary for {result['date']}: {result['created']} created, {result['total']} total")
        update_after_run(self.component_name)
        self.report(result_queue, result)
