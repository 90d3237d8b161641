from .task import DailySummaryTask


def register_tasks(plugin_manager):
    """Register the daily schedule summary task"""
    plugin_manager.register_task(DailySummaryTask)
