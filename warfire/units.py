"""
Unit state management for the Warfire engine.

Units, players and tile stacks. All living units sit in one UnitRoster keyed
by id; the per-tile and per-owner views are indices kept in sync by the
roster itself.
"""

import uuid
from dataclasses import dataclass, field
from typing import Iterator, Optional

from .rules import Artifact, Rulebook, TerrainType, UnitDefinition


def new_unit_id() -> str:
    return f"unit_{uuid.uuid4().hex[:12]}"


@dataclass
class Unit:
    """A single unit on the map."""
    id: str
    unit_type: str  # Key into the rulebook (e.g. "CAVALRY")
    owner: int  # Player id
    x: int
    y: int
    definition: UnitDefinition
    hp: Optional[int] = None  # Defaults to the archetype's max hp
    has_moved: bool = False
    has_attacked: bool = False
    artifacts: list[Artifact] = field(default_factory=list)

    def __post_init__(self):
        if self.hp is None:
            self.hp = self.definition.hp

    @classmethod
    def create(cls, rules: Rulebook, unit_type: str, owner: int, x: int, y: int,
               unit_id: Optional[str] = None) -> "Unit":
        definition = rules.unit(unit_type)
        return cls(
            id=unit_id or new_unit_id(),
            unit_type=unit_type,
            owner=owner,
            x=x,
            y=y,
            definition=definition,
            hp=definition.hp,
        )

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def max_hp(self) -> int:
        return self.definition.hp

    @property
    def is_hero(self) -> bool:
        return self.definition.is_hero

    @property
    def range(self) -> int:
        return self.definition.range

    @property
    def cost(self) -> int:
        return self.definition.cost

    @property
    def is_alive(self) -> bool:
        return self.hp > 0

    @property
    def position(self) -> tuple[int, int]:
        return (self.x, self.y)

    @property
    def effective_attack(self) -> int:
        return self.definition.attack + sum(a.attack_bonus for a in self.artifacts)

    @property
    def effective_defense(self) -> int:
        return self.definition.defense + sum(a.defense_bonus for a in self.artifacts)

    @property
    def effective_movement(self) -> int:
        return self.definition.movement + sum(a.movement_bonus for a in self.artifacts)

    def can_enter_terrain(self, terrain: TerrainType) -> bool:
        return terrain in self.definition.can_enter

    def take_damage(self, damage: int) -> bool:
        """Apply damage, clamped to [0, max_hp]. Returns True if the unit died."""
        self.hp = max(0, min(self.max_hp, self.hp - damage))
        return self.hp <= 0

    def heal(self, amount: int) -> int:
        """Heal up to max_hp. Returns the hp actually restored."""
        old_hp = self.hp
        self.hp = max(0, min(self.max_hp, self.hp + amount))
        return self.hp - old_hp

    def add_artifact(self, artifact: Artifact):
        self.artifacts.append(artifact)

    def reset_turn(self):
        self.has_moved = False
        self.has_attacked = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.unit_type,
            "owner": self.owner,
            "x": self.x,
            "y": self.y,
            "hp": self.hp,
            "has_moved": self.has_moved,
            "has_attacked": self.has_attacked,
            "artifacts": [a.to_dict() for a in self.artifacts],
        }

    @classmethod
    def from_dict(cls, data: dict, rules: Rulebook) -> "Unit":
        unit = cls.create(rules, data["type"], data["owner"], data["x"], data["y"],
                          unit_id=data["id"])
        unit.hp = max(0, min(unit.max_hp, int(data["hp"])))
        unit.has_moved = data.get("has_moved", False)
        unit.has_attacked = data.get("has_attacked", False)
        unit.artifacts = [Artifact.from_dict(a) for a in data.get("artifacts", [])]
        return unit


@dataclass
class Stack:
    """
    Living units on one tile.

    Under the one-unit-per-tile rule there is at most one member, but attacks
    target a tile, so combat still asks the stack for its defender.
    """
    x: int
    y: int
    units: list[Unit] = field(default_factory=list)

    @property
    def owner(self) -> Optional[int]:
        return self.units[0].owner if self.units else None

    def combat_unit(self) -> Optional[Unit]:
        """The unit most worth defending with."""
        living = [u for u in self.units if u.hp > 0]
        if not living:
            return None
        return max(living, key=lambda u: u.effective_attack + u.effective_defense + u.hp)


@dataclass
class Player:
    """A seat at the table, human or AI."""
    id: int
    name: str
    is_ai: bool = False
    gold: int = 50
    is_alive: bool = True
    defeated_turn: Optional[int] = None

    def add_gold(self, amount: int) -> int:
        self.gold += amount
        return self.gold

    def spend_gold(self, amount: int) -> bool:
        """Deduct gold; refuses when the balance would go negative."""
        if amount < 0 or self.gold < amount:
            return False
        self.gold -= amount
        return True

    def defeat(self, turn: int):
        self.is_alive = False
        self.defeated_turn = turn


class UnitRoster:
    """All units in play, keyed by id, with tile and owner indices."""

    def __init__(self):
        self._units: dict[str, Unit] = {}
        self._by_position: dict[tuple[int, int], dict[str, None]] = {}
        self._by_owner: dict[int, dict[str, None]] = {}

    def __len__(self) -> int:
        return len(self._units)

    def __iter__(self) -> Iterator[Unit]:
        return iter(list(self._units.values()))

    def __contains__(self, unit: Unit) -> bool:
        return unit.id in self._units

    def get(self, unit_id: str) -> Optional[Unit]:
        return self._units.get(unit_id)

    def add(self, unit: Unit):
        self._units[unit.id] = unit
        self._by_position.setdefault(unit.position, {})[unit.id] = None
        self._by_owner.setdefault(unit.owner, {})[unit.id] = None

    def remove(self, unit: Unit) -> bool:
        if unit.id not in self._units:
            return False
        del self._units[unit.id]
        self._by_position.get(unit.position, {}).pop(unit.id, None)
        self._by_owner.get(unit.owner, {}).pop(unit.id, None)
        return True

    def relocate(self, unit: Unit, x: int, y: int):
        """Move a unit and keep the tile index current."""
        self._by_position.get(unit.position, {}).pop(unit.id, None)
        unit.x = x
        unit.y = y
        self._by_position.setdefault(unit.position, {})[unit.id] = None

    def at(self, x: int, y: int) -> list[Unit]:
        """Living units on a tile."""
        ids = self._by_position.get((x, y), {})
        return [self._units[uid] for uid in ids if self._units[uid].hp > 0]

    def owned_by(self, owner: int) -> list[Unit]:
        """Living units of a player, in creation order."""
        ids = self._by_owner.get(owner, {})
        return [self._units[uid] for uid in ids if self._units[uid].hp > 0]

    def living(self) -> list[Unit]:
        return [u for u in self._units.values() if u.hp > 0]
