"""Reconcile declared plugin packages with what is importable.

``PackageReconciler.sync`` compares the ``plugins`` configuration table with
the packages that can be imported, installs the missing ones in a single pip
invocation, and, when auto-update is enabled, periodically upgrades every
declared package. The time gate is a small JSON state file holding
``{"lastUpdated": <epoch millis>}``; a missing or unreadable file means an
update is due.
"""

import asyncio
import json
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..base.loggable import Loggable
from ..config.accessor import Config
from .loader import PluginLoader, top_level_module

MILLIS_PER_HOUR = 3_600_000


@dataclass
class SyncOptions:
    """Options for one reconciliation pass.

    Args:
        auto_update: Run the time-gated upgrade path.
        update_interval_hours: Minimum time between upgrades.
        state_path: JSON file recording the last successful upgrade.
        install_dir: ``pip --target`` directory; None installs into the
            running interpreter's environment.
        module_paths: Extra directories searched when resolving packages.
    """

    auto_update: bool = False
    update_interval_hours: float = 24
    state_path: Optional[Path] = None
    install_dir: Optional[Path] = None
    module_paths: List[Path] = field(default_factory=list)


@dataclass
class SyncResult:
    """Outcome of a reconciliation pass. The four lists are disjoint."""

    installed: List[str] = field(default_factory=list)
    already_installed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    skipped_update: bool = True


class PipInstaller(Loggable):
    """Run ``python -m pip install`` as an asyncio subprocess."""

    def __init__(self, python: Optional[str] = None):
        super().__init__()
        self.python = python or sys.executable

    def build_command(
        self, requirements: Sequence[str], target: Optional[Path], upgrade: bool
    ) -> List[str]:
        command = [self.python, "-m", "pip", "install", "--disable-pip-version-check"]
        if upgrade:
            command.append("--upgrade")
        if target is not None:
            command.extend(["--target", str(target)])
        command.extend(requirements)
        return command

    async def install(
        self,
        requirements: Sequence[str],
        target: Optional[Path] = None,
        upgrade: bool = False,
    ) -> bool:
        """Install ``requirements`` in one invocation.

        Returns:
            bool: True if pip ran and exited with status 0.
        """
        command = self.build_command(requirements, target, upgrade)
        self.logger.debug(f"Running: {' '.join(command)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self.logger.error(f"Cannot start pip: {e}")
            return False

        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            self.logger.error(
                f"pip exited with status {proc.returncode}: "
                f"{stderr.decode(errors='replace').strip()}"
            )
            return False
        return True


class PackageReconciler(Loggable):
    """Install missing plugin packages and keep them up to date.

    Args:
        config: Runtime configuration; the ``plugins`` table declares packages.
        installer: Object with an async ``install(requirements, target,
            upgrade) -> bool``; defaults to `PipInstaller`.
        clock: Returns the current time in seconds since the epoch.
    """

    def __init__(
        self,
        config: Config,
        installer: Optional[PipInstaller] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__()
        self.config = config
        self.installer = installer or PipInstaller()
        self.clock = clock

    def requirement_for(self, package_name: str) -> str:
        """Return the pip requirement for a declared plugin package.

        The package config's ``package`` value wins; otherwise the top-level
        module name is used (pip normalizes ``_`` and ``-``).
        """
        package_config = (self.config.get("plugins", {}) or {}).get(package_name)
        if isinstance(package_config, dict) and isinstance(
            package_config.get("package"), str
        ):
            return package_config["package"]
        return top_level_module(package_name)

    async def sync(self, options: Optional[SyncOptions] = None) -> SyncResult:
        options = options or SyncOptions()
        package_names = list((self.config.get("plugins", {}) or {}).keys())
        result = SyncResult()

        if not package_names:
            self.logger.info("No plugins configured")
            return result

        resolver = PluginLoader(options.module_paths)
        missing = []
        for package_name in package_names:
            if resolver.is_resolvable(package_name):
                result.already_installed.append(package_name)
            else:
                missing.append(package_name)

        if missing:
            self.logger.info(f"Installing {len(missing)} package(s): {', '.join(missing)}")
            requirements = self._requirements(missing)
            if await self.installer.install(requirements, options.install_dir):
                result.installed.extend(missing)
                self.logger.info(f"Installed: {', '.join(missing)}")
            else:
                result.failed.extend(missing)
                self.logger.error(f"Failed to install: {', '.join(missing)}")
        else:
            self.logger.info("All plugin packages already installed")

        if options.auto_update:
            await self._auto_update(package_names, result, options)

        return result

    async def _auto_update(
        self, package_names: List[str], result: SyncResult, options: SyncOptions
    ) -> None:
        if not self._update_due(options.state_path, options.update_interval_hours):
            self.logger.debug("Plugin update not due yet")
            return

        targets = [name for name in package_names if name not in result.failed]
        if not targets:
            return

        result.skipped_update = False
        self.logger.info(f"Updating {len(targets)} plugin package(s)")
        upgraded = await self.installer.install(
            self._requirements(targets), options.install_dir, upgrade=True
        )
        if not upgraded:
            self.logger.error("Plugin update failed; will retry on next sync")
            return

        result.updated = [
            name for name in result.already_installed if name in targets
        ]
        result.already_installed = [
            name for name in result.already_installed if name not in result.updated
        ]
        self._write_last_updated(options.state_path)

    def _requirements(self, package_names: List[str]) -> List[str]:
        requirements: List[str] = []
        for name in package_names:
            requirement = self.requirement_for(name)
            if requirement not in requirements:
                requirements.append(requirement)
        return requirements

    def _update_due(self, state_path: Optional[Path], interval_hours: float) -> bool:
        last_updated = self._read_last_updated(state_path)
        if last_updated is None:
            return True
        now_millis = self.clock() * 1000
        return now_millis - last_updated >= interval_hours * MILLIS_PER_HOUR

    def _read_last_updated(self, state_path: Optional[Path]) -> Optional[float]:
        if state_path is None:
            return None
        try:
            with open(state_path, "r", encoding="utf-8") as fh:
                state = json.load(fh)
            last_updated = state["lastUpdated"]
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError) as e:
            self.logger.warning(f"Unreadable update state {state_path}: {e}")
            return None
        if isinstance(last_updated, bool) or not isinstance(last_updated, (int, float)):
            self.logger.warning(f"Corrupt update state {state_path}: {state!r}")
            return None
        return float(last_updated)

    def _write_last_updated(self, state_path: Optional[Path]) -> None:
        if state_path is None:
            return
        try:
            Path(state_path).parent.mkdir(parents=True, exist_ok=True)
            with open(state_path, "w", encoding="utf-8") as fh:
                json.dump({"lastUpdated": int(self.clock() * 1000)}, fh)
        except OSError as e:
            self.logger.error(f"Cannot write update state {state_path}: {e}")
