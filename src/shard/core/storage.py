"""Storage collaborator used when no storage plugin is configured."""

from typing import List, Optional

from ..base.loggable import Loggable
from .types import Entity, Fact, SearchOptions, SearchResult, StoredMessage


class NullStorage(Loggable):
    """Accept every storage call, persist nothing, and say so in the log."""

    name = "null-storage"

    async def ping(self) -> bool:
        return False

    async def store_message(self, message: StoredMessage) -> None:
        self.logger.warning("No storage configured; store_message is a no-op")

    async def get_messages(
        self, channel_id: str, limit: Optional[int] = None
    ) -> List[StoredMessage]:
        self.logger.warning("No storage configured; get_messages returns nothing")
        return []

    async def search(self, options: SearchOptions) -> List[SearchResult]:
        self.logger.warning("No storage configured; search returns nothing")
        return []

    async def store_entity(self, entity: Entity) -> None:
        self.logger.warning("No storage configured; store_entity is a no-op")

    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        self.logger.warning("No storage configured; get_entity returns None")
        return None

    async def store_fact(self, fact: Fact) -> None:
        self.logger.warning("No storage configured; store_fact is a no-op")

    async def get_facts(self, subject: str) -> List[Fact]:
        self.logger.warning("No storage configured; get_facts returns nothing")
        return []
