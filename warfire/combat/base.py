"""
Base combat resolution system with common mechanics.
"""

import random
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class CombatReport:
    """Full outcome of one attack."""
    attacker_id: str
    defender_id: str
    attacker_owner: int
    defender_owner: int
    damage: int
    critical: bool
    type_multiplier: float
    terrain_bonus: int
    defender_hp: int
    defender_died: bool = False
    attacker_died: bool = False
    location: Optional[tuple[int, int]] = None
    captured_city: Optional[Any] = None  # City the caller should hand to the attacker
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "attacker_id": self.attacker_id,
            "defender_id": self.defender_id,
            "attacker_owner": self.attacker_owner,
            "defender_owner": self.defender_owner,
            "damage": self.damage,
            "critical": self.critical,
            "type_multiplier": self.type_multiplier,
            "terrain_bonus": self.terrain_bonus,
            "defender_hp": self.defender_hp,
            "defender_died": self.defender_died,
            "attacker_died": self.attacker_died,
            "location": list(self.location) if self.location else None,
            "city_captured": self.captured_city.id if self.captured_city else None,
            "notes": list(self.notes),
        }


class CombatResolver:
    """Base class for combat resolution."""

    def __init__(self, rng_seed: Optional[int] = None, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random(rng_seed)

    def roll(self, base: float, variance: float = 0.2) -> float:
        """Roll with variance around base value."""
        return base * self.rng.uniform(1.0 - variance, 1.0 + variance)

    def hit_check(self, chance: float) -> bool:
        """Check if a chance-based effect triggers."""
        return self.rng.random() < chance
