import importlib
import pkgutil
from typing import Dict, Type, Any, Optional
import logging
from .plugin_base import PluginBase


class PluginManager:
    def __init__(self, plugin_package: str = "emasjid.plugins"):
        self.plugin_classes: Dict[str, Type[PluginBase]] = {}
        self.plugins: Dict[str, PluginBase] = {}
        self.logger = logging.getLogger(__name__)
        self.discover_plugins(plugin_package)

    def discover_plugins(self, plugin_package: str = "emasjid.plugins") -> None:
        """Discover and register all plugins in the specified package"""
        package = importlib.import_module(plugin_package)
        self.logger.info(f"Discovering plugins in package: {plugin_package}")

        for _, name, is_pkg in pkgutil.iter_modules(package.__path__):
            if not is_pkg:
                continue
            try:
                module = importlib.import_module(f"{plugin_package}.{name}")
                if hasattr(module, "register_plugins"):
                    module.register_plugins(self)
                    self.logger.info(f"Registered plugins from: {name}")
            except Exception as e:
                self.logger.exception(f"Error loading plugin {name}: {e}")

    def register_plugin(self, plugin_class: Type[PluginBase]) -> None:
        self.logger.debug(f"Registering plugin: {plugin_class.name}")
        self.plugin_classes[plugin_class.name] = plugin_class

    def create_plugins(self, app, config_data: Dict[str, Any]) -> None:
        """Instantiate every registered plugin whose config section is enabled (default: enabled)"""
        for name, plugin_class in self.plugin_classes.items():
            config = config_data.get(name) or {}
            if not config.get("enable", True):
                self.logger.info(f"Plugin '{name}' disabled")
                continue
            try:
                self.plugins[name] = plugin_class(app, config)
            except Exception as e:
                self.logger.exception(f"Failed to create plugin {name}: {e}")

    def get(self, name: str) -> Optional[PluginBase]:
        return self.plugins.get(name)

    def start_all(self) -> None:
        for name, plugin in self.plugins.items():
            try:
                plugin.start()
            except Exception as e:
                self.logger.exception(f"Failed to start plugin {name}: {e}")

    def stop_all(self) -> None:
        for plugin in self.plugins.values():
            plugin.stop()

    def handle_config_change(self, config_data: Dict[str, Any]) -> None:
        for name, plugin in self.plugins.items():
            try:
                plugin.handle_config_change(config_data)
            except Exception as e:
                self.logger.error(f"Error applying config change to {name}: {e}")
