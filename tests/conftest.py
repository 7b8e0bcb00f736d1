from __future__ import annotations

from typing import Any, Dict, List, Tuple

import pytest

from shard.core.events import EventDispatcher


class EventRecorder:
    """Wildcard handler collecting ``(event, payload)`` pairs in order."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def __call__(self, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((event, payload))

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def payloads(self, event: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.events if name == event]


@pytest.fixture
def events() -> EventDispatcher:
    return EventDispatcher()


@pytest.fixture
def recorder(events: EventDispatcher) -> EventRecorder:
    rec = EventRecorder()
    events.on_any(rec)
    return rec
