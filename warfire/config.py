"""
Game setup configuration.

Scenario presets live in data/scenarios/<name>.yaml. Environment variables
override a few operational settings after the scenario is read.
"""

import logging
import os
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class PlayerSeat:
    """Who sits in one player slot."""
    name: str
    is_ai: bool = False

    def to_dict(self) -> dict:
        return {"name": self.name, "is_ai": self.is_ai}


def default_seats() -> list[PlayerSeat]:
    return [PlayerSeat("Player 1", is_ai=False), PlayerSeat("Player 2", is_ai=True)]


@dataclass
class GameConfig:
    """Everything needed to start a game."""
    map_width: int = 20
    map_height: int = 15
    players: list[PlayerSeat] = field(default_factory=default_seats)
    starting_gold: int = 50
    ai_think_delay: float = 0.5  # Seconds between replayed AI actions
    seed: Optional[int] = None
    data_path: str = "data"
    save_path: str = "saves/warfire_save.json"
    log_level: str = "INFO"
    scenario: str = "default"

    @classmethod
    def from_dict(cls, data: dict, **overrides) -> "GameConfig":
        """Build from a scenario mapping; unknown keys are ignored."""
        players = data.get("players")
        config = cls(
            map_width=int(data.get("map_width", 20)),
            map_height=int(data.get("map_height", 15)),
            players=[
                PlayerSeat(p.get("name", f"Player {i + 1}"), bool(p.get("is_ai", False)))
                for i, p in enumerate(players)
            ] if players else default_seats(),
            starting_gold=int(data.get("starting_gold", 50)),
            ai_think_delay=float(data.get("ai_think_delay", 0.5)),
            seed=data.get("seed"),
            log_level=str(data.get("log_level", "INFO")).upper(),
        )
        for key, value in overrides.items():
            setattr(config, key, value)
        return config

    @classmethod
    def load(cls, scenario: str = "default", data_path: Path | str = "data") -> "GameConfig":
        """Read a scenario preset, then apply environment overrides."""
        scenario_path = Path(data_path) / "scenarios" / f"{scenario}.yaml"
        data = {}
        if scenario_path.exists():
            with open(scenario_path) as f:
                raw = yaml.safe_load(f) or {}
            data = raw.get("scenario", raw)
            logger.info(f"Scenario loaded: {data.get('name', scenario)}")
        else:
            logger.warning(f"Scenario not found: {scenario_path}, using defaults")

        config = cls.from_dict(data, data_path=str(data_path), scenario=scenario)
        config.apply_env()
        return config

    def apply_env(self, environ: Optional[dict] = None):
        """Apply WARFIRE_* environment overrides."""
        env = os.environ if environ is None else environ

        if env.get("WARFIRE_AI_DELAY"):
            self.ai_think_delay = float(env["WARFIRE_AI_DELAY"])
        if env.get("WARFIRE_SEED"):
            self.seed = int(env["WARFIRE_SEED"])
        if env.get("WARFIRE_SAVE_PATH"):
            self.save_path = env["WARFIRE_SAVE_PATH"]
        if env.get("WARFIRE_LOG_LEVEL"):
            self.log_level = env["WARFIRE_LOG_LEVEL"].upper()

    def to_dict(self) -> dict:
        return {
            "map_width": self.map_width,
            "map_height": self.map_height,
            "players": [p.to_dict() for p in self.players],
            "starting_gold": self.starting_gold,
            "ai_think_delay": self.ai_think_delay,
            "seed": self.seed,
            "scenario": self.scenario,
        }
