from .task import PrayerTimesTask


def register_tasks(plugin_manager):
    """Register prayer times task"""
    plugin_manager.register_task(PrayerTimesTask)
