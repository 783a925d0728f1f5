"""
Outbound game events.

The engine never reaches for a global bus: an EventChannel is created by
whoever builds the game and injected into the map, the turn manager and the
AI. Renderers and UI bridges subscribe to it.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class EventType(Enum):
    UNIT_MOVED = "unit:moved"
    UNIT_DAMAGED = "unit:damaged"
    UNIT_HEALED = "unit:healed"
    UNIT_REMOVED = "unit:removed"
    UNIT_PRODUCED = "unit:produced"
    ARTIFACT_FOUND = "unit:artifact_found"
    RUIN_EXPLORED = "ruin:explored"
    CITY_CAPTURED = "city:captured"
    CITY_HEALED_UNIT = "city:healed_unit"
    PLAYER_GOLD_CHANGED = "player:gold_changed"
    PLAYER_DEFEATED = "player:defeated"
    PLAYER_CHANGED = "player:changed"
    COMBAT_RESOLVED = "combat:resolved"
    PHASE_CHANGED = "phase:changed"
    GAME_OVER = "game:over"
    GAME_SAVED = "game:saved"
    GAME_LOADED = "game:loaded"
    MESSAGE = "ui:message"
    AI_TURN_STARTED = "ai:turn_started"
    AI_PRODUCING = "ai:producing"
    AI_BLOCKADED = "ai:blockaded"
    AI_TURN_ENDED = "ai:turn_ended"


@dataclass
class GameEvent:
    """A single notification. Payload values are plain JSON-friendly data."""
    type: EventType
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"event": self.type.value, **self.data}


Listener = Callable[[GameEvent], None]


class EventChannel:
    """Observer registry with an optional bounded record of emitted events."""

    def __init__(self, record: bool = False, max_records: int = 5000):
        self._listeners: dict[EventType, list[Listener]] = {}
        self._global_listeners: list[Listener] = []
        self.records: Optional[deque[GameEvent]] = deque(maxlen=max_records) if record else None

    def subscribe(self, event_type: EventType, callback: Listener):
        self._listeners.setdefault(event_type, []).append(callback)

    def subscribe_all(self, callback: Listener):
        self._global_listeners.append(callback)

    def unsubscribe(self, event_type: EventType, callback: Listener):
        callbacks = self._listeners.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event_type: EventType, **data) -> GameEvent:
        """Deliver an event to its listeners. Listener errors are logged, not raised."""
        event = GameEvent(type=event_type, data=data)
        if self.records is not None:
            self.records.append(event)

        for callback in [*self._listeners.get(event_type, []), *self._global_listeners]:
            try:
                callback(event)
            except Exception:
                logger.exception(f"Event {event_type.value} listener error")
        return event

    def drain(self) -> list[GameEvent]:
        """Pop every recorded event (empty when recording is off)."""
        if self.records is None:
            return []
        events = list(self.records)
        self.records.clear()
        return events
