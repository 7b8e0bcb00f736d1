"""Resolve declared plugin packages to plugin objects.

A declaration is an import path, optionally followed by ``:attribute``
(entry-point style). Without an explicit attribute the module is searched, in
order, for a ``create_plugin()`` factory, a ``plugin`` object, and finally the
module itself is used. Classes are instantiated with no arguments and
factories are called with no arguments.
"""

import importlib
import importlib.machinery
import importlib.util
import inspect
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..base.loggable import Loggable
from .errors import PluginLoadError


def split_plugin_spec(spec: str) -> Tuple[str, Optional[str]]:
    """Split ``"pkg.module:attr"`` into ``("pkg.module", "attr")``."""
    module_name, _, attribute = spec.partition(":")
    return module_name.strip(), (attribute.strip() or None)


def top_level_module(spec: str) -> str:
    """Return the top-level import name of a plugin declaration."""
    module_name, _ = split_plugin_spec(spec)
    return module_name.split(".", 1)[0]


class PluginLoader(Loggable):
    """Import plugin modules with basic caching.

    Extra ``module_paths`` (e.g. the directory plugin packages are installed
    into) are prepended to ``sys.path`` once, before the first import.
    """

    def __init__(self, module_paths: Optional[Iterable[Path]] = None):
        super().__init__()
        self.module_paths: List[Path] = [Path(p) for p in (module_paths or [])]
        self._loaded_modules: Dict[str, ModuleType] = {}
        self._paths_ready = False

    def setup_search_paths(self) -> List[Path]:
        """Add the configured module paths to ``sys.path`` if not already present."""
        if not self._paths_ready:
            for path in reversed(self.module_paths):
                if str(path) not in sys.path:
                    sys.path.insert(0, str(path))
            importlib.invalidate_caches()
            self._paths_ready = True
        return self.module_paths

    def is_resolvable(self, spec: str) -> bool:
        """Return whether the declaration's top-level module can be found.

        The configured module paths are searched first, then the
        interpreter's regular import path.
        """
        name = top_level_module(spec)
        if not name:
            return False
        if self.module_paths:
            found = importlib.machinery.PathFinder.find_spec(
                name, [str(p) for p in self.module_paths]
            )
            if found is not None:
                return True
        try:
            return importlib.util.find_spec(name) is not None
        except (ImportError, ValueError):
            return False

    def load_module(self, module_name: str) -> ModuleType:
        """Import ``module_name``, caching the result.

        Raises:
            PluginLoadError: If the module cannot be imported.
        """
        if module_name in self._loaded_modules:
            return self._loaded_modules[module_name]

        self.setup_search_paths()
        try:
            module = importlib.import_module(module_name)
        except Exception as e:
            raise PluginLoadError(f"Cannot import {module_name}: {e}") from e

        self._loaded_modules[module_name] = module
        return module

    def load(self, spec: str) -> Any:
        """Resolve a declaration to one plugin object.

        Raises:
            PluginLoadError: If the module or attribute cannot be resolved, or
                the factory raises.
        """
        module_name, attribute = split_plugin_spec(spec)
        if not module_name:
            raise PluginLoadError(f"Empty plugin declaration: {spec!r}")

        module = self.load_module(module_name)

        if attribute:
            if not hasattr(module, attribute):
                raise PluginLoadError(f"{module_name} has no attribute {attribute}")
            target = getattr(module, attribute)
        elif callable(getattr(module, "create_plugin", None)):
            target = module.create_plugin
        elif hasattr(module, "plugin"):
            target = module.plugin
        else:
            target = module

        return self._materialize(target, spec)

    @staticmethod
    def _materialize(target: Any, spec: str) -> Any:
        if inspect.isclass(target) or inspect.isfunction(target):
            try:
                return target()
            except Exception as e:
                raise PluginLoadError(f"Plugin factory for {spec} failed: {e}") from e
        return target

    def clear_cache(self) -> None:
        """Clear the loaded modules cache."""
        self._loaded_modules.clear()
