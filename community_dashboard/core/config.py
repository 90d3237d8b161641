import yaml
from pathlib import Path
import os
from datetime import date, datetime, tzinfo
from typing import Any, Dict, Optional, List, Callable
import logging
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler, FileModifiedEvent
import time
import re
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from dateutil import tz

from community_dashboard.core.recurrence import RecurrenceEvaluator

DEFAULT_LOCATION = {"lat": -6.2, "lon": 106.816666}


class ConfigChangeHandler(FileSystemEventHandler):
    def __init__(self, config):
        self.config = config
        self.last_modified = 0
        self.cooldown = 1.0  # seconds

    def on_modified(self, event):
        if not isinstance(event, FileModifiedEvent):
            return

        current_time = time.time()
        if current_time - self.last_modified < self.cooldown:
            return

        if event.src_path == str(self.config.config_file):
            try:
                self.last_modified = current_time
                self.config.reload()
            except Exception as e:
                logging.error(f"Error handling config change: {e}")


class Config:
    def __init__(self, config_path: Optional[str] = None):
        logging.debug("Initializing Config class")

        self.change_callbacks: List[Callable] = []
        self.observer = None
        self._loading = False  # guards against recursive reloads

        if config_path:
            self.config_file = Path(config_path).expanduser().resolve()
            self.config_dir = self.config_file.parent
        else:
            self.config_dir = Path.home() / ".community_dashboard"
            self.config_file = self.config_dir / "config.yaml"

        logging.debug(f"Using config file: {self.config_file}")

        self._load_env_file()
        self._ensure_config_exists()
        self._load_config()

    def start_watching(self) -> None:
        """Reload the config file when it changes on disk."""
        if self.observer is not None:
            return
        self.observer = Observer()
        handler = ConfigChangeHandler(self)
        logging.info(f"Path monitored for reloading: {self.config_dir}")
        self.observer.schedule(handler, str(self.config_dir), recursive=False)
        self.observer.start()

    def register_change_callback(self, callback: Callable) -> None:
        """Register a callback to be called with the new data when config changes"""
        self.change_callbacks.append(callback)

    def reload(self) -> None:
        """Reload config and notify listeners"""
        if self._loading:
            return

        self._loading = True
        try:
            logging.info("Config file change detected - reloading configuration")

            # Wait briefly for the file to be fully written
            time.sleep(0.1)

            old_config = self.data.copy() if hasattr(self, 'data') else {}
            self._load_config()
            self._log_config_changes(old_config, self.data)

            for callback in self.change_callbacks:
                try:
                    callback(self.data)
                except Exception as e:
                    logging.error(f"Error in config change callback: {e}")

        except Exception as e:
            logging.error(f"Error reloading config: {e}")
            logging.exception(e)
        finally:
            self._loading = False

    def _log_config_changes(self, old_config: Dict, new_config: Dict) -> None:
        """Log the differences between old and new configs"""
        def compare_dict(path: str, dict1: Dict, dict2: Dict) -> None:
            for key in set(dict1.keys()) | set(dict2.keys()):
                current_path = f"{path}.{key}" if path else key
                if key in dict1 and key in dict2:
                    if isinstance(dict1[key], dict) and isinstance(dict2[key], dict):
                        compare_dict(current_path, dict1[key], dict2[key])
                    elif dict1[key] != dict2[key]:
                        logging.info(f"Config changed: {current_path}: {dict1[key]} -> {dict2[key]}")
                elif key in dict1:
                    logging.info(f"Config removed: {current_path}: {dict1[key]}")
                else:
                    logging.info(f"Config added: {current_path}: {dict2[key]}")

        compare_dict("", old_config, new_config)

    def cleanup(self) -> None:
        """Stop the file observer"""
        if self.observer is not None:
            self.observer.stop()
            self.observer.join()
            self.observer = None

    def _get_default_config(self) -> Dict[str, Any]:
        return {
            "timezone": None,  # e.g. "Asia/Jakarta"; None uses the machine's local time
            "location": dict(DEFAULT_LOCATION),
            "database": {
                "path": str(self.config_dir / "dashboard.db"),
            },
            "cache": {
                "directory": str(self.config_dir / "cache"),
            },
            "api": {
                "enabled": False,
                "host": "127.0.0.1",
                "port": 8765,
            },
            "components": {
                "Schedules": {
                    "enable": True,
                    "summary_time": "09:45",
                    "threshold": 7,
                },
                "Prayer Times": {
                    "enable": True,
                    "schedule_time": "00:05",
                    "calculation_method": 2,
                },
            },
            "logging": {
                "level": "INFO",
                "file": str(self.config_dir / "dashboard.log"),
            },
        }

    def _ensure_config_exists(self) -> None:
        """Create default config if it doesn't exist"""
        if not self.config_dir.exists():
            logging.info(f"Creating config directory: {self.config_dir}")
            self.config_dir.mkdir(parents=True)

        if not self.config_file.exists():
            logging.info(f"Creating default config file: {self.config_file}")
            self.config_file.write_text(yaml.dump(self._get_default_config()))

    def _load_env_file(self) -> None:
        """Load environment variables from a .env file next to the config or in the cwd"""
        env_files = [
            self.config_dir / ".env",
            self.config_dir.parent / ".env",
            Path.cwd() / ".env"
        ]

        env_file = next((path for path in env_files if path.exists()), None)
        if not env_file:
            logging.debug("No .env file found, skipping environment variable loading")
            return

        logging.info(f"Loading environment variables from: {env_file}")
        try:
            with open(env_file, 'r') as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith('#'):
                        continue

                    match = re.match(r'^([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$', line)
                    if match:
                        key, value = match.groups()
                        value = value.strip('"').strip("'")
                        # Existing environment wins
                        if key not in os.environ:
                            os.environ[key] = value
                            logging.debug(f"Loaded env var: {key}")
        except Exception as e:
            logging.warning(f"Error loading .env file: {e}")

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively substitute ${VAR_NAME} / $VAR_NAME strings"""
        if isinstance(data, dict):
            return {key: self._substitute_env_vars(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]
        elif isinstance(data, str):
            if data.startswith('${') and data.endswith('}'):
                return os.environ.get(data[2:-1], data)
            elif data.startswith('$') and len(data) > 1:
                return os.environ.get(data[1:], data)
            return data
        return data

    def _load_config(self) -> None:
        """Load configuration from file, keeping the previous data on error"""
        try:
            logging.debug(f"Loading config from: {self.config_file}")
            with open(self.config_file) as f:
                new_data = yaml.safe_load(f)

            if not isinstance(new_data, dict):
                raise ValueError("Invalid config format: root must be a dictionary")

            new_data = self._substitute_env_vars(new_data)

            # Fill sections missing from older config files
            for key, value in self._get_default_config().items():
                new_data.setdefault(key, value)

            if new_data.get("logging", {}).get("file"):
                new_data["logging"]["file"] = os.path.expanduser(new_data["logging"]["file"])

            self.data = new_data
            logging.debug(f"Loaded config data: {self.data}")

        except Exception as e:
            logging.error(f"Error loading config: {e}")
            if hasattr(self, 'data'):
                logging.info("Keeping previous configuration")
            else:
                logging.info("Using default configuration")
                self.data = self._get_default_config()

    def get_component_config(self, component_name: str) -> Optional[Dict[str, Any]]:
        """Get config for a specific component"""
        components = self.data.get("components") or {}
        return components.get(component_name, None)

    def save_component_config(self, component_name: str, config: Dict[str, Any]) -> None:
        """Save configuration for a specific component"""
        self.data.setdefault("components", {})[component_name] = config
        with open(self.config_file, "w") as f:
            yaml.dump(self.data, f)


def configured_timezone(config_data: Optional[Dict[str, Any]]) -> tzinfo:
    """ZoneInfo for config 'timezone', or the machine's local zone when unset."""
    name = (config_data or {}).get("timezone")
    if not name:
        return tz.tzlocal()
    try:
        return ZoneInfo(str(name))
    except (ZoneInfoNotFoundError, ValueError) as e:
        logging.warning(f"Unknown timezone {name!r} in config, using local time: {e}")
        return tz.tzlocal()


def local_today(config_data: Optional[Dict[str, Any]] = None, now: Optional[datetime] = None) -> date:
    """Today's date in the configured timezone. The single clock read for evaluation passes."""
    zone = configured_timezone(config_data)
    if now is None:
        now = datetime.now(zone)
    elif now.tzinfo is not None:
        now = now.astimezone(zone)
    return now.date()


def make_evaluator(config_data: Optional[Dict[str, Any]], day: Optional[date] = None) -> RecurrenceEvaluator:
    """Evaluator for one pass: today and schedule anchors both in the configured zone."""
    return RecurrenceEvaluator(day or local_today(config_data), configured_timezone(config_data))


def configured_location(config_data: Optional[Dict[str, Any]]) -> Dict[str, float]:
    location = (config_data or {}).get("location") or {}
    return {
        "lat": float(location.get("lat", DEFAULT_LOCATION["lat"])),
        "lon": float(location.get("lon", DEFAULT_LOCATION["lon"])),
    }
