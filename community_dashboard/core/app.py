from typing import Dict, Any, List, Optional
import logging
import sys
import time
from .task_manager import TaskManager
from .task import BaseTask
from .plugin_manager import PluginManager
from .config import Config


class DashboardService:
    """Headless dashboard: config, database, plugin tasks on timers, and the optional API server."""

    def __init__(self, config_path: Optional[str] = None, watch_config: bool = True):
        self.logger = logging.getLogger(self.__class__.__name__)

        self.config = Config(config_path=config_path)
        self.config.register_change_callback(self.handle_config_change)

        self._setup_logging()

        # Initialize database (before managers so tables exist)
        from .db import init_db
        init_db(self.config.data)

        self.plugin_manager = PluginManager()
        self.task_manager = TaskManager()

        self.tasks: List[BaseTask] = []
        self.initialize_tasks()

        if watch_config:
            self.config.start_watching()

    def _setup_logging(self):
        """Configure logging to write to both file and stdout"""
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
        logging_config = self.config.data.get("logging") or {}
        root_logger.setLevel(getattr(logging, str(logging_config.get("level", "INFO")).upper(), logging.INFO))

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        )

        if logging_config.get("file"):
            file_handler = logging.FileHandler(logging_config["file"])
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        logging.info("Community dashboard starting...")

    def initialize_tasks(self) -> None:
        for component_name in self.plugin_manager.tasks:
            self.logger.debug(f"Checking component: {component_name}")
            component_config = self.config.get_component_config(component_name)
            task = self.plugin_manager.create_task(component_name, component_config, self.config.data)
            if not task:
                self.logger.debug(f"Skipping disabled component: {component_name}")
                continue
            try:
                task.ensure_scheduled()
                self.task_manager.register_task(component_name, task.run)
                self.task_manager.schedule_registered_task(component_name, component_config, self.config.data)
                self.tasks.append(task)
                self.logger.info(f"Task {component_name} scheduled")
            except Exception as e:
                self.logger.error(f"Error scheduling task {component_name}: {e}")
                self.logger.exception(e)

    def handle_config_change(self, new_config: Dict[str, Any]) -> None:
        """Reschedule tasks with the new component settings"""
        self.logger.info("Handling config change")
        try:
            for task in self.tasks:
                self.task_manager.unregister_task(task.component_name)
            self.tasks = []
            self.initialize_tasks()
        except Exception as e:
            self.logger.error(f"Error handling config change: {e}", exc_info=True)

    def _drain_result_queue(self) -> None:
        """Log background task results."""
        while not self.task_manager.result_queue.empty():
            task_name, result = self.task_manager.result_queue.get_nowait()
            if result is None:
                self.logger.warning(f"Task {task_name} reported no result")
            else:
                self.logger.debug(f"Processing task result for {task_name}: {result}")

    def run(self, poll_interval: float = 1.0) -> None:
        from community_dashboard.api import run_api_server
        try:
            run_api_server(self)
            while True:
                self._drain_result_queue()
                time.sleep(poll_interval)
        except KeyboardInterrupt:
            self.logger.info("Shutting down")
        finally:
            self.cleanup()

    def cleanup(self) -> None:
        self.task_manager.stop()
        self.config.cleanup()
