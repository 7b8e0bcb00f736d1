"""Logging mixin shared by Shard's core classes."""

import logging


class Loggable:
    """Provide a per-class ``self.logger``.

    The logger is named after the defining module and class, e.g.
    ``shard.plugins.manager.PluginManager``, so log levels can be tuned per
    component through the standard ``logging`` hierarchy.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(
            f"{self.__class__.__module__}.{self.__class__.__name__}"
        )
