from abc import ABC, abstractmethod
from typing import Dict, Any
import logging


class PluginBase(ABC):
    """Base for service plugins. `name` is also the plugin's config section and API prefix."""

    name: str = ""

    def __init__(self, app, config: Dict[str, Any]):
        self.config = config or {}
        self.app = app
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def start(self) -> None:
        """Start background work (register tasks etc.)"""
        pass

    def stop(self) -> None:
        """Stop background work"""
        pass

    def handle_config_change(self, config_data: Dict[str, Any]) -> None:
        """Called after the config file is reloaded"""
        self.config = config_data.get(self.name) or {}
        self.logger.info(f"Updated config for {self.name}")
