import importlib
import pkgutil
from typing import Dict, Type, Any, Optional
import logging
from .task import BaseTask


class PluginManager:
    def __init__(self):
        self.tasks: Dict[str, Type[BaseTask]] = {}
        self.logger = logging.getLogger(__name__)
        self.discover_plugins()

    def discover_plugins(self, plugin_package: str = "community_dashboard.plugins") -> None:
        """Discover and register all plugins in the specified package"""
        package = importlib.import_module(plugin_package)
        self.logger.info(f"Discovering plugins in package: {plugin_package}")

        for _, name, is_pkg in pkgutil.iter_modules(package.__path__):
            if is_pkg:
                try:
                    module = importlib.import_module(f"{plugin_package}.{name}")
                    self.logger.debug(f"Found plugin module: {name}")
                    if hasattr(module, "register_tasks"):
                        module.register_tasks(self)
                        self.logger.info(f"Registered tasks from plugin: {name}")
                except Exception as e:
                    self.logger.error(f"Error loading plugin {name}: {e}")
                    self.logger.exception(e)

    def register_task(self, task_class: Type[BaseTask]) -> None:
        """Register a task class under its component name"""
        self.logger.debug(f"Registering task: {task_class.name}")
        self.tasks[task_class.name] = task_class

    def create_task(self, name: str, config: Optional[Dict[str, Any]], config_data: Optional[Dict[str, Any]] = None) -> Optional[BaseTask]:
        """Create a registered task if it's enabled in config"""
        if name not in self.tasks:
            self.logger.warning(f"Task '{name}' not found")
            return None

        if not config or not config.get("enable", False):
            self.logger.info(f"Component '{name}' disabled (enable: {config.get('enable', False) if config else False})")
            return None

        self.logger.debug(f"Creating task {name} with config: {config}")
        return self.tasks[name](name, config, config_data or {})
