"""Plugin error hierarchy."""

from typing import List, Optional


class PluginError(Exception):
    """Base exception for plugin errors."""


class PluginLoadError(PluginError):
    """A declared plugin could not be imported or resolved."""


class PluginValidationError(PluginError):
    """A resolved object does not satisfy the plugin contract."""

    def __init__(self, source: str, errors: List[str]):
        self.source = source
        self.errors = errors
        super().__init__(f"Invalid plugin contract: {source}: {'; '.join(errors)}")


class PluginDependencyError(PluginError):
    """The declared dependency graph cannot be ordered."""


class MissingDependencyError(PluginDependencyError):
    def __init__(self, dependency: str, required_by: Optional[str]):
        self.dependency = dependency
        self.required_by = required_by
        super().__init__(
            f'Plugin "{required_by}" depends on unregistered plugin "{dependency}"'
        )


class DependencyCycleError(PluginDependencyError):
    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(f"Plugin dependency cycle: {' -> '.join(cycle)}")
