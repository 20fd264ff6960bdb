"""
Plugin loader for dynamically discovering and loading plugins.
"""

import importlib
import inspect
import pkgutil

from depfinder_mcp.core.logging_config import get_logger
from depfinder_mcp.core.plugin import Plugin

logger = get_logger(__name__)


class PluginLoader:
    """Responsible for discovering and loading plugins."""

    def __init__(self):
        self._plugins: dict[str, Plugin] = {}

    def discover_plugins(
        self, package_path: str, package_name: str = "depfinder_mcp.tools"
    ) -> list[Plugin]:
        """
        Discover and load plugins from a package directory (including subdirectories).

        Args:
            package_path: Absolute path to the package directory
            package_name: Python package name prefix

        Returns:
            List of instantiated Plugin objects
        """
        logger.info(f"Discovering plugins in {package_path}")

        discovered_plugins = []

        for _, name, _ in pkgutil.walk_packages([package_path], prefix=f"{package_name}."):
            if name.endswith(".__init__") or "__pycache__" in name:
                continue

            try:
                module = importlib.import_module(name)
            except ImportError as e:
                logger.warning(f"Failed to import module {name}: {e}")
                continue

            for item_name, item in inspect.getmembers(module, inspect.isclass):
                if not issubclass(item, Plugin) or item is Plugin or inspect.isabstract(item):
                    continue
                if item.__module__ != module.__name__:
                    continue
                try:
                    plugin_instance = item()
                except Exception as e:
                    logger.error(f"Failed to instantiate plugin {item_name}: {e}")
                    continue
                self._plugins[plugin_instance.name] = plugin_instance
                discovered_plugins.append(plugin_instance)
                logger.info(f"Loaded plugin: {plugin_instance.name}")

        return discovered_plugins

    def get_plugin(self, name: str) -> Plugin | None:
        """Get a loaded plugin by name."""
        return self._plugins.get(name)

    def get_all_plugins(self) -> list[Plugin]:
        """Get all loaded plugins."""
        return list(self._plugins.values())
