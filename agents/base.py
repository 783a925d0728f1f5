"""
Base game-playing agent.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from warfire.events import EventChannel
from warfire.turn import TurnManager


@dataclass
class AgentConfig:
    """Configuration for an automated player."""
    name: str = "heuristic"
    # Static strength weights used to order unit activations
    attack_weight: float = 1.0
    defense_weight: float = 1.0
    hp_weight: float = 0.1


@dataclass
class AgentAction:
    """One discrete thing an agent did during its turn."""
    kind: str  # "produce", "move", "attack", "explore", "blockaded", "error", "end_turn"
    player_id: int
    unit_id: Optional[str] = None
    unit_type: Optional[str] = None
    city_id: Optional[str] = None
    from_pos: Optional[tuple[int, int]] = None
    to_pos: Optional[tuple[int, int]] = None
    score: Optional[float] = None
    detail: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {"kind": self.kind, "player_id": self.player_id}
        for key in ("unit_id", "unit_type", "city_id", "score"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.from_pos is not None:
            data["from"] = list(self.from_pos)
        if self.to_pos is not None:
            data["to"] = list(self.to_pos)
        if self.detail:
            data["detail"] = self.detail
        return data


class Agent(ABC):
    """Base class for automated players."""

    def __init__(self, turn_manager: TurnManager, config: Optional[AgentConfig] = None):
        self.turn_manager = turn_manager
        self.config = config or AgentConfig()
        self.turn_count = 0
        self.is_running = False

    @property
    def events(self) -> EventChannel:
        return self.turn_manager.events

    @abstractmethod
    def play_turn(self) -> list[AgentAction]:
        """Play the current player's whole turn and end it. Returns the action log."""
        pass

    def bind(self, turn_manager: TurnManager):
        """Point the agent at another game, e.g. after a new game starts."""
        self.turn_manager = turn_manager

    def reset(self):
        """Reset agent state for a new game."""
        self.turn_count = 0
        self.is_running = False
