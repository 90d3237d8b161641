"""Shared test fixtures: temporary databases, config files and a fake service for the API."""

import io
import os
import tempfile
from contextlib import contextmanager, redirect_stdout
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, Optional

import yaml

from community_dashboard.core.db import dispose_db, init_db
from community_dashboard.core.task_manager import TaskManager


@contextmanager
def temp_database():
    """Fresh SQLite file with all tables; yields the temp directory."""
    dispose_db()
    with tempfile.TemporaryDirectory() as tmp:
        init_db(db_url=f"sqlite:///{os.path.join(tmp, 'test.db')}")
        try:
            yield tmp
        finally:
            dispose_db()


def write_config(directory: str, data: Dict[str, Any]) -> Path:
    path = Path(directory) / "config.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


def make_config_data(tmp: str, **overrides: Any) -> Dict[str, Any]:
    data = {
        "timezone": "UTC",
        "location": {"lat": -6.2, "lon": 106.816666},
        "database": {"path": os.path.join(tmp, "dashboard.db")},
        "cache": {"directory": os.path.join(tmp, "cache")},
        "api": {"enabled": False},
        "components": {
            "Schedules": {"enable": True, "summary_time": "09:45", "threshold": 7},
            "Prayer Times": {"enable": True, "schedule_time": "00:05"},
        },
        "logging": {"level": "INFO", "file": os.path.join(tmp, "dashboard.log")},
    }
    data.update(overrides)
    return data


def fake_dashboard_app(config_data: Dict[str, Any], task_names: Optional[list] = None) -> SimpleNamespace:
    """Just enough of DashboardService for create_app()."""
    return SimpleNamespace(
        config=SimpleNamespace(data=config_data),
        plugin_manager=SimpleNamespace(tasks={name: object for name in (task_names or [])}),
        task_manager=TaskManager(),
    )


def capture_stdout(fn, *args, **kwargs):
    buf = io.StringIO()
    with redirect_stdout(buf):
        result = fn(*args, **kwargs)
    return result, buf.getvalue()
