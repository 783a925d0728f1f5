"""
Interaction phases and selection state.

The phase machine only accepts whitelisted transitions. Selection is a tagged
union so "nothing", "a unit" and "a city" can never be set at the same time.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .events import EventChannel, EventType

logger = logging.getLogger(__name__)


class Phase(Enum):
    IDLE = "idle"
    SELECTED = "selected"  # A unit is selected
    MOVED = "moved"  # The selected unit moved and may still attack
    PRODUCTION = "production"  # A city is selected for production
    GAME_OVER = "game_over"


TRANSITIONS: dict[Phase, frozenset[Phase]] = {
    Phase.IDLE: frozenset({Phase.SELECTED, Phase.PRODUCTION, Phase.GAME_OVER}),
    Phase.SELECTED: frozenset({Phase.IDLE, Phase.MOVED, Phase.GAME_OVER}),
    Phase.MOVED: frozenset({Phase.IDLE, Phase.GAME_OVER}),
    Phase.PRODUCTION: frozenset({Phase.IDLE, Phase.GAME_OVER}),
    Phase.GAME_OVER: frozenset(),
}


@dataclass(frozen=True)
class NoSelection:
    pass


@dataclass(frozen=True)
class UnitSelection:
    unit_id: str


@dataclass(frozen=True)
class CitySelection:
    city_id: str


Selection = Union[NoSelection, UnitSelection, CitySelection]


def describe_selection(selection: Selection) -> Optional[dict]:
    """JSON-friendly view of the selection, None when nothing is selected."""
    match selection:
        case UnitSelection(unit_id=unit_id):
            return {"kind": "unit", "id": unit_id}
        case CitySelection(city_id=city_id):
            return {"kind": "city", "id": city_id}
        case _:
            return None


class PhaseMachine:
    """Current phase plus the whitelist guarding changes to it."""

    def __init__(self, events: Optional[EventChannel] = None):
        self.events = events or EventChannel()
        self.phase = Phase.IDLE

    def can_transition(self, to_phase: Phase) -> bool:
        return to_phase in TRANSITIONS[self.phase]

    def transition(self, to_phase: Phase) -> bool:
        """Move to a new phase. Rejected transitions leave the phase unchanged."""
        if not self.can_transition(to_phase):
            logger.warning(f"Rejected phase transition {self.phase.value} -> {to_phase.value}")
            return False

        from_phase = self.phase
        self.phase = to_phase
        self.events.emit(EventType.PHASE_CHANGED, from_phase=from_phase.value, to_phase=to_phase.value)
        return True

    def reset(self):
        """Force IDLE. Only used when a saved game is restored."""
        self.phase = Phase.IDLE

    @property
    def is_game_over(self) -> bool:
        return self.phase == Phase.GAME_OVER
