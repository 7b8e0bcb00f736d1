"""Plugin lifecycle management for Shard.

This module loads the plugins declared in the ``plugins`` configuration
table, validates their contract, registers single or multiple named
instances, and drives ``init``/``destroy`` in dependency order.

Failure policy: a plugin that fails to import, validate, initialize or tear
down is logged and recorded in ``failed_plugins``; the rest of the batch
always proceeds.
"""

import copy
from typing import Any, Dict, List, Optional, Set

from ..base.loggable import Loggable
from ..config.accessor import Config
from ..core.events import EventDispatcher, Events
from .base import PluginContext, PluginType, plugin_type_name
from .errors import DependencyCycleError, MissingDependencyError, PluginError
from .loader import PluginLoader
from .validator import PluginValidator


class PluginManager(Loggable):
    """Load, validate, order and drive the lifecycle of plugins.

    Responsibilities:
    - Resolve each configured package through `PluginLoader`
    - Validate the plugin contract through `PluginValidator`
    - Register one instance, or one clone per declared ``instanceId``
    - Initialize in dependency order and tear down in exactly the reverse
    - Answer type-based lookups in registration order

    Args:
        config: Runtime configuration; the ``plugins`` table declares packages.
        loader: Resolves declarations to plugin objects.
        events: Optional dispatcher for ``plugin:loaded``/``plugin:destroyed``.
        strict_dependencies: Raise on missing dependencies or cycles instead
            of logging and skipping them.
    """

    def __init__(
        self,
        config: Config,
        loader: Optional[PluginLoader] = None,
        events: Optional[EventDispatcher] = None,
        validator: Optional[PluginValidator] = None,
        strict_dependencies: bool = False,
    ):
        super().__init__()
        self.config = config
        self.loader = loader or PluginLoader()
        self.events = events
        self.validator = validator or PluginValidator()
        self.strict_dependencies = strict_dependencies

        self.plugins: Dict[str, Any] = {}
        self.failed_plugins: Set[str] = set()
        self.initialized = False

    async def load_all(self) -> None:
        """Load every declared plugin package.

        Logs a summary of successes and failures. Does not raise.
        """
        plugins_config = self.config.get("plugins", {}) or {}

        for package_name, package_config in plugins_config.items():
            try:
                base_plugin = self.loader.load(package_name)
                self.validator.ensure_valid(base_plugin, package_name)
            except PluginError as e:
                self.logger.error(f'Failed to load plugin "{package_name}": {e}')
                self.failed_plugins.add(package_name)
                continue
            except Exception as e:
                self.logger.error(
                    f'Unexpected error loading plugin "{package_name}": {e}',
                    exc_info=True,
                )
                self.failed_plugins.add(package_name)
                continue

            instances = None
            if isinstance(package_config, dict):
                instances = package_config.get("instances")

            if isinstance(instances, list):
                for descriptor in instances:
                    instance_id = (
                        descriptor.get("instanceId")
                        if isinstance(descriptor, dict)
                        else None
                    )
                    if not isinstance(instance_id, str):
                        self.logger.error(
                            f'Skipping instance of "{package_name}" without a string instanceId'
                        )
                        continue
                    try:
                        plugin = self._create_instance(base_plugin, instance_id)
                    except Exception as e:
                        self.logger.error(
                            f'Cannot create instance "{instance_id}" of "{package_name}": {e}'
                        )
                        self.failed_plugins.add(f"{package_name}#{instance_id}")
                        continue
                    await self._register_loaded(plugin, f"{package_name}#{instance_id}")
            else:
                await self._register_loaded(base_plugin, package_name)

        self.logger.info(
            f"Loaded {len(self.plugins)} plugin(s) from {len(plugins_config)} package(s)"
        )
        if self.failed_plugins:
            self.logger.warning(f"Failed to load plugins: {sorted(self.failed_plugins)}")

    @staticmethod
    def _create_instance(base_plugin: Any, instance_id: str) -> Any:
        """Return a shallow clone of ``base_plugin`` named ``base#instanceId``."""
        plugin = copy.copy(base_plugin)
        plugin.name = f"{base_plugin.name}#{instance_id}"
        plugin.instance_id = instance_id
        return plugin

    def register(self, plugin: Any) -> bool:
        """Validate and register a plugin object.

        Returns:
            bool: True if registered; False if invalid or the name is taken.
        """
        errors = self.validator.validate_plugin(plugin)
        if errors:
            self.logger.error(f"Invalid plugin contract: {errors}")
            return False

        if plugin.name in self.plugins:
            self.logger.error(
                f'Plugin name "{plugin.name}" is already registered; '
                f"refusing to replace it with another instance"
            )
            return False

        self.plugins[plugin.name] = plugin
        self.logger.info(
            f"Loaded plugin: {plugin.name} ({plugin_type_name(plugin.type)}) v{plugin.version}"
        )
        return True

    async def _register_loaded(self, plugin: Any, package_key: str) -> None:
        if self.register(plugin):
            await self._emit(
                Events.PLUGIN_LOADED,
                {"name": plugin.name, "type": plugin_type_name(plugin.type)},
            )
        elif plugin.name in self.plugins:
            # keyed by package so the registered name stays healthy
            self.failed_plugins.add(f"{package_key} (duplicate {plugin.name})")
        else:
            self.failed_plugins.add(package_key)

    def resolve_order(self) -> List[Any]:
        """Return plugins ordered so that dependencies precede dependents.

        Depth-first traversal seeded by registration order. Missing
        dependencies and cycles are logged and skipped unless
        ``strict_dependencies`` is set.

        Raises:
            MissingDependencyError: In strict mode, for an unregistered dependency.
            DependencyCycleError: In strict mode, for a dependency cycle.
        """
        order: List[Any] = []
        done: Set[str] = set()
        path: List[str] = []

        def visit(name: str, required_by: Optional[str]) -> None:
            if name in done:
                return
            if name in path:
                cycle = path[path.index(name):] + [name]
                if self.strict_dependencies:
                    raise DependencyCycleError(cycle)
                self.logger.warning(f"Ignoring dependency cycle: {' -> '.join(cycle)}")
                return

            plugin = self.plugins.get(name)
            if plugin is None:
                if self.strict_dependencies:
                    raise MissingDependencyError(name, required_by)
                self.logger.warning(
                    f'Plugin "{required_by}" depends on unregistered plugin "{name}"; skipping'
                )
                return

            path.append(name)
            for dependency in getattr(plugin, "dependencies", None) or ():
                visit(dependency, name)
            path.pop()

            done.add(name)
            order.append(plugin)

        for name in list(self.plugins):
            visit(name, None)

        return order

    async def init_all(self, context: PluginContext) -> None:
        """Initialize plugins sequentially in dependency order.

        A failing ``init`` is logged and does not prevent later plugins from
        being initialized.
        """
        for plugin in self.resolve_order():
            try:
                await plugin.init(context)
                self.logger.info(f"Initialized plugin: {plugin.name}")
            except Exception as e:
                self.logger.error(
                    f'Failed to init plugin "{plugin.name}": {e}', exc_info=True
                )
                self.failed_plugins.add(plugin.name)

        self.initialized = True

    async def destroy_all(self) -> None:
        """Destroy plugins in reverse dependency order and clear all state."""
        try:
            ordered = self.resolve_order()
        except PluginError as e:
            self.logger.error(f"Cannot order plugins for teardown: {e}")
            ordered = list(self.plugins.values())

        try:
            for plugin in reversed(ordered):
                try:
                    await plugin.destroy()
                except Exception as e:
                    self.logger.error(
                        f'Failed to destroy plugin "{plugin.name}": {e}', exc_info=True
                    )
                    continue
                self.logger.info(f"Destroyed plugin: {plugin.name}")
                await self._emit(Events.PLUGIN_DESTROYED, {"name": plugin.name})
        finally:
            self.plugins.clear()
            self.failed_plugins.clear()
            self.initialized = False

    def get_by_type(self, plugin_type: str) -> List[Any]:
        """Return registered plugins of ``plugin_type`` in registration order."""
        wanted = plugin_type_name(plugin_type)
        return [
            plugin
            for plugin in self.plugins.values()
            if plugin_type_name(plugin.type) == wanted
        ]

    def get_channels(self) -> List[Any]:
        return self.get_by_type(PluginType.CHANNEL)

    def get_models(self) -> List[Any]:
        return self.get_by_type(PluginType.MODEL)

    def get_tools(self) -> List[Any]:
        return self.get_by_type(PluginType.TOOL)

    def get_storage(self) -> List[Any]:
        return self.get_by_type(PluginType.STORAGE)

    def get_plugin(self, name: str) -> Optional[Any]:
        return self.plugins.get(name)

    def get_available_plugins(self) -> List[str]:
        """List names of registered plugins in registration order."""
        return list(self.plugins.keys())

    async def _emit(self, event: str, payload: Dict[str, Any]) -> None:
        if self.events is not None:
            await self.events.emit(event, payload)
