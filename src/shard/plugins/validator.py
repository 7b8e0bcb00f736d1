"""Plugin contract validation for Shard.

Checks that an object resolved from a plugin package exposes the lifecycle
contract the manager relies on: string identity fields, callable
``init``/``destroy`` and a well-formed dependency list. Problems are reported
as a list of human-readable messages so callers can log all of them at once.
"""

from typing import Any, List

from ..base.loggable import Loggable
from .base import PluginType, plugin_type_name
from .errors import PluginValidationError


class PluginValidator(Loggable):
    """Validate plugin objects against the lifecycle contract.

    Unknown ``type`` values are accepted with a warning so that custom
    plugin kinds keep working; everything else listed below is fatal:

    - ``name``, ``version`` and ``type`` must be non-empty strings
    - ``init`` and ``destroy`` must be callable
    - ``dependencies``, when present, must be a list/tuple of strings
    """

    REQUIRED_STRINGS = ("name", "version", "type")
    REQUIRED_METHODS = ("init", "destroy")

    def __init__(self) -> None:
        super().__init__()
        self.known_types = {member.value for member in PluginType}

    def validate_plugin(self, plugin: Any) -> List[str]:
        """Return validation errors for ``plugin``; empty if valid."""
        if plugin is None:
            return ["Plugin object is None"]

        errors = []
        for attr in self.REQUIRED_STRINGS:
            value = getattr(plugin, attr, None)
            if not isinstance(value, str) or not value.strip():
                errors.append(f"Missing or non-string attribute: {attr}")

        for attr in self.REQUIRED_METHODS:
            if not callable(getattr(plugin, attr, None)):
                errors.append(f"Missing required method: {attr}()")

        errors.extend(self._validate_dependencies(plugin))

        plugin_type = getattr(plugin, "type", None)
        if isinstance(plugin_type, str):
            type_name = plugin_type_name(plugin_type)
            if type_name not in self.known_types:
                self.logger.warning(
                    f"Plugin {getattr(plugin, 'name', '?')} declares unknown type: {type_name}"
                )

        return errors

    def ensure_valid(self, plugin: Any, source: str) -> None:
        """Raise ``PluginValidationError`` when ``plugin`` breaks the contract."""
        errors = self.validate_plugin(plugin)
        if errors:
            raise PluginValidationError(source, errors)

    @staticmethod
    def _validate_dependencies(plugin: Any) -> List[str]:
        dependencies = getattr(plugin, "dependencies", None)
        if dependencies is None:
            return []
        if not isinstance(dependencies, (list, tuple)):
            return ["Attribute dependencies must be a list of plugin names"]
        if not all(isinstance(dep, str) for dep in dependencies):
            return ["Attribute dependencies must contain only strings"]
        return []
