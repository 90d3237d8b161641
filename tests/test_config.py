import os
import tempfile
import time
import unittest
from datetime import date, datetime, timezone
from pathlib import Path
from unittest import mock
from zoneinfo import ZoneInfo

import yaml
from dateutil import tz

from community_dashboard.core.config import (
    DEFAULT_LOCATION,
    Config,
    configured_location,
    configured_timezone,
    local_today,
    make_evaluator,
)
from tests.fixtures import write_config


class ConfigFileTests(unittest.TestCase):
    def test_default_file_created(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "config.yaml"
            config = Config(config_path=str(path))
            self.assertTrue(path.exists())
            self.assertEqual(config.get_component_config("Schedules")["summary_time"], "09:45")
            self.assertEqual(config.get_component_config("Schedules")["threshold"], 7)
            self.assertEqual(config.data["location"], DEFAULT_LOCATION)
            self.assertIsNone(config.get_component_config("Missing"))

    def test_missing_sections_filled_and_env_substituted(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = write_config(tmp, {
                "timezone": "${DASH_TZ}",
                "location": {"lat": "$DASH_LAT", "lon": 39.8},
            })
            with mock.patch.dict(os.environ, {"DASH_TZ": "Asia/Jakarta", "DASH_LAT": "21.4"}):
                config = Config(config_path=str(path))
            self.assertEqual(config.data["timezone"], "Asia/Jakarta")
            self.assertEqual(configured_location(config.data), {"lat": 21.4, "lon": 39.8})
            self.assertIn("database", config.data)
            self.assertIn("Prayer Times", config.data["components"])

    def test_invalid_root_falls_back_to_defaults(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.yaml"
            path.write_text("- just\n- a list\n")
            config = Config(config_path=str(path))
            self.assertEqual(config.data["api"]["port"], 8765)

    def test_reload_notifies_callbacks(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = write_config(tmp, {"timezone": "UTC"})
            config = Config(config_path=str(path))
            seen = []
            config.register_change_callback(seen.append)
            write_config(tmp, {"timezone": "Asia/Jakarta"})
            config.reload()
            self.assertEqual(len(seen), 1)
            self.assertEqual(seen[0]["timezone"], "Asia/Jakarta")

    def test_save_component_config(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = write_config(tmp, {"timezone": "UTC"})
            config = Config(config_path=str(path))
            config.save_component_config("Schedules", {"enable": False})
            saved = yaml.safe_load(path.read_text())
            self.assertEqual(saved["components"]["Schedules"], {"enable": False})


class ClockTests(unittest.TestCase):
    def test_configured_timezone(self):
        self.assertEqual(configured_timezone({"timezone": "Asia/Jakarta"}), ZoneInfo("Asia/Jakarta"))
        self.assertIsInstance(configured_timezone({}), tz.tzlocal)
        self.assertIsInstance(configured_timezone(None), tz.tzlocal)

    def test_unknown_timezone_warns(self):
        with self.assertLogs(level="WARNING"):
            self.assertIsInstance(configured_timezone({"timezone": "Mars/Olympus"}), tz.tzlocal)

    def test_local_today_uses_zone(self):
        now = datetime(2024, 1, 1, 20, 0, tzinfo=timezone.utc)
        self.assertEqual(local_today({"timezone": "Asia/Jakarta"}, now=now), date(2024, 1, 2))
        self.assertEqual(local_today({"timezone": "UTC"}, now=now), date(2024, 1, 1))

    def test_make_evaluator_pins_day_and_zone(self):
        evaluator = make_evaluator({"timezone": "Asia/Jakarta"}, date(2024, 1, 2))
        self.assertEqual(evaluator.today, date(2024, 1, 2))
        self.assertEqual(evaluator.tz, ZoneInfo("Asia/Jakarta"))

    def test_default_location(self):
        self.assertEqual(configured_location({}), {"lat": -6.2, "lon": 106.816666})


@unittest.skipUnless(hasattr(time, "tzset"), "needs time.tzset")
class LocalZoneTests(unittest.TestCase):
    """Machine zone Asia/Jakarta (UTC+7) with no timezone in config."""

    def setUp(self):
        patcher = mock.patch.dict(os.environ, {"TZ": "Asia/Jakarta"})
        patcher.start()
        self.addCleanup(time.tzset)
        self.addCleanup(patcher.stop)
        time.tzset()

    def test_unset_timezone_is_machine_zone(self):
        now = datetime(2024, 1, 1, 23, 0, tzinfo=timezone.utc)
        self.assertEqual(now.astimezone(configured_timezone({"timezone": None})).hour, 6)
        self.assertEqual(local_today({"timezone": None}, now=now), date(2024, 1, 2))

    def test_anchor_and_today_share_local_calendar(self):
        # 23:00 UTC on Jan 1 is 06:00 on Jan 2 in Jakarta
        schedule = {"frequency": "month_twice", "created_at": datetime(2024, 1, 1, 23, 0)}
        evaluator = make_evaluator({"timezone": None}, date(2024, 1, 2))
        self.assertTrue(evaluator.evaluate_record(schedule).due)
        self.assertEqual(evaluator.due_items([schedule]), [schedule])
        self.assertFalse(make_evaluator({"timezone": None}, date(2024, 1, 1)).evaluate_record(schedule).due)
        self.assertTrue(make_evaluator({"timezone": None}, date(2024, 1, 16)).evaluate_record(schedule).due)


if __name__ == "__main__":
    unittest.main()
