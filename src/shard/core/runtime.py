"""Runtime composition: boot, steady state, and teardown.

Boot order:
  config -> event dispatcher -> package sync -> plugin load -> plugin init
  -> tool dispatcher / agent loop / message router -> ``runtime:ready``

Shutdown runs once, in a fixed order: stop routing, release the keep-alive
wait, emit ``runtime:shutdown``, destroy plugins, clear event registrations.
"""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Any, List, Optional

from ..agent.loop import AgentLoop
from ..agent.router import MessageRouter
from ..agent.tools import ToolDispatcher
from ..base.loggable import Loggable
from ..config.accessor import Config
from ..plugins.base import PluginContext
from ..plugins.loader import PluginLoader
from ..plugins.manager import PluginManager
from ..plugins.reconciler import PackageReconciler, SyncOptions, SyncResult
from .events import EventDispatcher, Events
from .storage import NullStorage
from .types import AgentDefinition

UPDATE_STATE_FILE = "plugin-update.json"
PLUGIN_INSTALL_DIR = "site-packages"
DEFAULT_UPDATE_INTERVAL_HOURS = 24


class Runtime(Loggable):
    """Own every core component and drive the process lifecycle.

    Args:
        config: Parsed runtime configuration.
        config_dir: Directory holding the config file; plugin packages are
            installed below it and the update state file lives in it. None
            installs into the running environment and disables the state file.
        loader: Plugin loader override (defaults to one searching the install dir).
        reconciler: Package reconciler override.
    """

    def __init__(
        self,
        config: Config,
        config_dir: Optional[Path] = None,
        loader: Optional[PluginLoader] = None,
        reconciler: Optional[PackageReconciler] = None,
    ) -> None:
        super().__init__()
        self.config = config
        self.config_dir = Path(config_dir) if config_dir is not None else None

        self.events = EventDispatcher()
        self.reconciler = reconciler or PackageReconciler(config)
        self.loader = loader or PluginLoader(self._module_paths())
        self.plugin_manager = PluginManager(
            config,
            loader=self.loader,
            events=self.events,
            strict_dependencies=bool(
                config.get("runtime.strictPluginDependencies", False)
            ),
        )

        self.storage: Any = None
        self.sync_result: Optional[SyncResult] = None
        self.agent_definition: Optional[AgentDefinition] = None
        self.tool_dispatcher: Optional[ToolDispatcher] = None
        self.agent_loop: Optional[AgentLoop] = None
        self.router: Optional[MessageRouter] = None

        self.ready = False
        self._shutdown_requested = False
        self._shutdown_task: Optional[asyncio.Task] = None
        self._keep_alive = asyncio.Event()

    @classmethod
    def from_file(cls, path: Path | str) -> "Runtime":
        """Build a runtime from a TOML file. Raises ``ConfigError`` if unreadable."""
        path = Path(path)
        return cls(Config.from_file(path), config_dir=path.parent)

    def _module_paths(self) -> List[Path]:
        if self.config_dir is None:
            return []
        return [self.config_dir / PLUGIN_INSTALL_DIR]

    def _sync_options(self) -> SyncOptions:
        return SyncOptions(
            auto_update=bool(self.config.get("runtime.pluginAutoUpdate", False)),
            update_interval_hours=float(
                self.config.get(
                    "runtime.pluginUpdateIntervalHours", DEFAULT_UPDATE_INTERVAL_HOURS
                )
            ),
            state_path=(
                self.config_dir / UPDATE_STATE_FILE if self.config_dir else None
            ),
            install_dir=(
                self.config_dir / PLUGIN_INSTALL_DIR if self.config_dir else None
            ),
            module_paths=self._module_paths(),
        )

    def _apply_log_level(self) -> None:
        level_name = str(self.config.get("runtime.logLevel", "info")).upper()
        level = logging.getLevelName(level_name)
        if isinstance(level, int):
            logging.getLogger("shard").setLevel(level)
        else:
            self.logger.warning(f"Ignoring unknown runtime.logLevel: {level_name}")

    async def boot(self) -> None:
        self.logger.info("Booting Shard runtime...")
        self._apply_log_level()

        self.sync_result = await self.reconciler.sync(self._sync_options())
        if self.sync_result.installed:
            self.logger.info(f"Installed {len(self.sync_result.installed)} new package(s)")
        if self.sync_result.updated:
            self.logger.info(
                f"Updated {len(self.sync_result.updated)} plugin package(s)"
            )

        await self.plugin_manager.load_all()

        storage_plugins = self.plugin_manager.get_storage()
        self.storage = storage_plugins[0] if storage_plugins else NullStorage()

        context = PluginContext(
            config=self.config,
            logger=logging.getLogger("shard.plugin"),
            events=self.events,
            storage=self.storage,
        )
        await self.plugin_manager.init_all(context)

        self._wire_agent()

        await self.events.emit(Events.RUNTIME_READY, {})
        self.ready = True
        self.logger.info("Shard runtime is ready")

    def _healthy(self, plugins: List[Any]) -> List[Any]:
        failed = self.plugin_manager.failed_plugins
        return [plugin for plugin in plugins if plugin.name not in failed]

    def _wire_agent(self) -> None:
        self.tool_dispatcher = ToolDispatcher(
            self._healthy(self.plugin_manager.get_tools())
        )
        self.agent_definition = AgentDefinition.from_config(self.config)

        models = self._healthy(self.plugin_manager.get_models())
        if not models:
            self.logger.warning("No model plugin available; message routing disabled")
            return
        if len(models) > 1:
            self.logger.info(
                f"Using model plugin {models[0].name} of {[m.name for m in models]}"
            )

        self.agent_loop = AgentLoop(models[0], self.tool_dispatcher, self.events)
        self.router = MessageRouter(
            self.agent_loop,
            self._healthy(self.plugin_manager.get_channels()),
            self.agent_definition,
            self.events,
        )
        self.router.start()

    async def wait_for_shutdown(self) -> None:
        """Block until `shutdown` releases the keep-alive wait."""
        await self._keep_alive.wait()

    def install_signal_handlers(self) -> None:
        """Shut down on SIGINT/SIGTERM (no-op where the loop cannot do this)."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._request_shutdown)
            except (NotImplementedError, RuntimeError):
                self.logger.debug(f"Signal handlers unsupported for {sig!r}")

    def _request_shutdown(self) -> None:
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.ensure_future(self.shutdown())

    async def run_forever(self) -> None:
        """Boot, then serve until a shutdown signal arrives."""
        await self.boot()
        self.install_signal_handlers()
        await self.wait_for_shutdown()
        if self._shutdown_task is not None:
            await self._shutdown_task

    async def shutdown(self) -> None:
        if self._shutdown_requested:
            return
        self._shutdown_requested = True
        self.logger.info("Shutting down...")

        if self.router is not None:
            self.router.stop()
        self._keep_alive.set()
        await self.events.emit(Events.RUNTIME_SHUTDOWN, {})
        await self.plugin_manager.destroy_all()
        self.events.remove_all()

        self.ready = False
        self.logger.info("Shutdown complete")
