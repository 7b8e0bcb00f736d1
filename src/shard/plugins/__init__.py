"""Plugin system exports.

Exposes:
- `Plugin`, `PluginContext`, `PluginType` and the capability interfaces
  `Channel`, `ModelProvider`, `Tool`, `StorageProvider`
- `PluginManager`: plugin loading, ordering, and lifecycle
- `PackageReconciler`, `SyncOptions`, `SyncResult`: package installation
"""

from .base import (
    Channel,
    ModelProvider,
    Plugin,
    PluginContext,
    PluginType,
    StorageProvider,
    Tool,
)
from .errors import (
    DependencyCycleError,
    MissingDependencyError,
    PluginDependencyError,
    PluginError,
    PluginLoadError,
    PluginValidationError,
)
from .loader import PluginLoader
from .manager import PluginManager
from .reconciler import PackageReconciler, PipInstaller, SyncOptions, SyncResult
from .validator import PluginValidator

__all__ = [
    "Channel",
    "DependencyCycleError",
    "MissingDependencyError",
    "ModelProvider",
    "PackageReconciler",
    "PipInstaller",
    "Plugin",
    "PluginContext",
    "PluginDependencyError",
    "PluginError",
    "PluginLoadError",
    "PluginLoader",
    "PluginManager",
    "PluginType",
    "PluginValidationError",
    "PluginValidator",
    "StorageProvider",
    "SyncOptions",
    "SyncResult",
    "Tool",
]
