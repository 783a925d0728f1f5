"""
Rules tables for the Warfire engine.

Terrain properties, unit archetypes, artifacts and the type-advantage matrix.
Values are loaded from data/schema/*.yaml when present, otherwise the
built-in defaults below are used.
"""

import logging
import yaml
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Optional

from .exceptions import ensure

logger = logging.getLogger(__name__)


class TerrainType(IntEnum):
    PLAINS = 0
    FOREST = 1
    MOUNTAINS = 2
    WATER = 3


@dataclass(frozen=True)
class TerrainInfo:
    """Terrain type properties loaded from schema."""
    terrain: TerrainType
    name: str
    movement_cost: int
    defense_bonus: int


@dataclass(frozen=True)
class UnitDefinition:
    """Static stats of one unit archetype."""
    id: str  # e.g. "LIGHT_INFANTRY"
    name: str
    cost: int
    hp: int
    attack: int
    defense: int
    movement: int
    range: int
    can_enter: frozenset[TerrainType]
    is_hero: bool = False


@dataclass(frozen=True)
class Artifact:
    """Equippable treasure found in ruins. Bonuses are additive."""
    name: str
    attack_bonus: int = 0
    defense_bonus: int = 0
    movement_bonus: int = 0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "attack_bonus": self.attack_bonus,
            "defense_bonus": self.defense_bonus,
            "movement_bonus": self.movement_bonus,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Artifact":
        return cls(
            name=data["name"],
            attack_bonus=data.get("attack_bonus", 0),
            defense_bonus=data.get("defense_bonus", 0),
            movement_bonus=data.get("movement_bonus", 0),
        )


CITY_INCOME = {"small": 5, "medium": 10, "large": 20}

_LAND = (TerrainType.PLAINS, TerrainType.FOREST, TerrainType.MOUNTAINS)

# id: (name, cost, hp, attack, defense, movement, range, can_enter, is_hero)
DEFAULT_UNITS = {
    "LIGHT_INFANTRY": ("Light Infantry", 10, 20, 3, 2, 3, 1, _LAND, False),
    "HEAVY_INFANTRY": ("Heavy Infantry", 20, 35, 5, 4, 2, 1, _LAND, False),
    "CAVALRY": ("Cavalry", 30, 25, 6, 2, 5, 1, _LAND, False),
    "ARCHER": ("Archer", 15, 15, 4, 1, 3, 2, _LAND, False),
    "CATAPULT": ("Catapult", 40, 10, 8, 1, 2, 3, _LAND, False),
    "DRAGON": ("Dragon", 100, 50, 10, 5, 6, 1, _LAND + (TerrainType.WATER,), False),
    "HERO": ("Hero", 0, 40, 7, 4, 4, 1, _LAND, True),
}

# terrain: (movement cost, defense bonus)
DEFAULT_TERRAIN = {
    TerrainType.PLAINS: (1, 0),
    TerrainType.FOREST: (1, 1),
    TerrainType.MOUNTAINS: (2, 2),
    TerrainType.WATER: (1, 0),
}

DEFAULT_ARTIFACTS = [
    Artifact("Sword of Power", attack_bonus=3),
    Artifact("Shield of Defense", defense_bonus=3),
    Artifact("Boots of Speed", movement_bonus=2),
]

# Attacker vs Defender; unlisted pairs are 1.0
DEFAULT_TYPE_ADVANTAGE = {
    ("LIGHT_INFANTRY", "ARCHER"): 1.25,
    ("LIGHT_INFANTRY", "CATAPULT"): 1.5,
    ("LIGHT_INFANTRY", "CAVALRY"): 0.8,
    ("LIGHT_INFANTRY", "DRAGON"): 0.6,
    ("HEAVY_INFANTRY", "CAVALRY"): 1.5,
    ("HEAVY_INFANTRY", "LIGHT_INFANTRY"): 1.25,
    ("HEAVY_INFANTRY", "DRAGON"): 0.75,
    ("CAVALRY", "ARCHER"): 1.5,
    ("CAVALRY", "CATAPULT"): 1.5,
    ("CAVALRY", "LIGHT_INFANTRY"): 1.2,
    ("CAVALRY", "HEAVY_INFANTRY"): 0.7,
    ("CAVALRY", "DRAGON"): 0.6,
    ("ARCHER", "DRAGON"): 1.3,
    ("ARCHER", "LIGHT_INFANTRY"): 1.1,
    ("ARCHER", "HEAVY_INFANTRY"): 0.8,
    ("ARCHER", "CAVALRY"): 0.85,
    ("CATAPULT", "HEAVY_INFANTRY"): 1.5,
    ("CATAPULT", "DRAGON"): 1.2,
    ("CATAPULT", "CAVALRY"): 0.6,
    ("CATAPULT", "LIGHT_INFANTRY"): 0.9,
    ("DRAGON", "LIGHT_INFANTRY"): 1.3,
    ("DRAGON", "HEAVY_INFANTRY"): 1.2,
    ("DRAGON", "CAVALRY"): 1.3,
    ("DRAGON", "CATAPULT"): 1.5,
    ("DRAGON", "ARCHER"): 0.8,
    ("HERO", "DRAGON"): 1.25,
    ("HERO", "CATAPULT"): 1.25,
}


class Rulebook:
    """
    All static game-balance tables.

    With no data path (or missing schema files) the built-in defaults apply,
    which keeps tests independent of the working directory.
    """

    def __init__(self, data_path: Optional[Path | str] = None):
        self.data_path = Path(data_path) if data_path is not None else None
        self.terrain: dict[TerrainType, TerrainInfo] = {}
        self.units: dict[str, UnitDefinition] = {}
        self.artifacts: list[Artifact] = []
        self.type_advantage: dict[tuple[str, str], float] = {}

        self._create_defaults()
        if self.data_path is not None:
            self._load_terrain_schema()
            self._load_unit_schema()

    def _create_defaults(self):
        for terrain, (move, defense) in DEFAULT_TERRAIN.items():
            self.terrain[terrain] = TerrainInfo(
                terrain=terrain, name=terrain.name.title(),
                movement_cost=move, defense_bonus=defense,
            )

        for unit_id, (name, cost, hp, atk, dfn, move, rng, enters, hero) in DEFAULT_UNITS.items():
            self.units[unit_id] = UnitDefinition(
                id=unit_id, name=name, cost=cost, hp=hp, attack=atk,
                defense=dfn, movement=move, range=rng,
                can_enter=frozenset(enters), is_hero=hero,
            )

        self.artifacts = list(DEFAULT_ARTIFACTS)
        self.type_advantage = dict(DEFAULT_TYPE_ADVANTAGE)

    def _load_terrain_schema(self):
        """Load terrain type definitions from schema."""
        schema_path = self.data_path / "schema" / "terrain.yaml"
        if not schema_path.exists():
            return

        with open(schema_path) as f:
            schema = yaml.safe_load(f) or {}

        for terrain_id, info in schema.get("terrain_types", {}).items():
            terrain = TerrainType[terrain_id.upper()]
            self.terrain[terrain] = TerrainInfo(
                terrain=terrain,
                name=info.get("name", terrain.name.title()),
                movement_cost=info.get("movement_cost", 1),
                defense_bonus=info.get("defense_bonus", 0),
            )

    def _load_unit_schema(self):
        """Load unit archetypes, artifacts and matchups from schema."""
        schema_path = self.data_path / "schema" / "units.yaml"
        if not schema_path.exists():
            return

        with open(schema_path) as f:
            schema = yaml.safe_load(f) or {}

        for unit_id, info in schema.get("unit_types", {}).items():
            self.units[unit_id] = UnitDefinition(
                id=unit_id,
                name=info.get("name", unit_id.replace("_", " ").title()),
                cost=info["cost"],
                hp=info["hp"],
                attack=info["attack"],
                defense=info["defense"],
                movement=info["movement"],
                range=info.get("range", 1),
                can_enter=frozenset(TerrainType[t.upper()] for t in info["can_enter"]),
                is_hero=info.get("is_hero", False),
            )

        if "artifacts" in schema:
            self.artifacts = [Artifact.from_dict(a) for a in schema["artifacts"]]

        for attacker, row in schema.get("type_advantage", {}).items():
            for defender, multiplier in row.items():
                self.type_advantage[(attacker, defender)] = float(multiplier)

        logger.debug(f"Loaded {len(self.units)} unit types from {schema_path}")

    def unit(self, unit_type: str) -> UnitDefinition:
        """Look up a unit archetype; unknown types are programmer errors."""
        definition = self.units.get(unit_type)
        ensure(definition is not None, f"Unknown unit type: {unit_type}")
        return definition

    def producible_types(self) -> list[UnitDefinition]:
        return [d for d in self.units.values() if not d.is_hero]

    def type_multiplier(self, attacker_type: str, defender_type: str) -> float:
        return self.type_advantage.get((attacker_type, defender_type), 1.0)

    def movement_cost(self, terrain: TerrainType) -> int:
        return self.terrain[terrain].movement_cost

    def defense_bonus(self, terrain: TerrainType) -> int:
        return self.terrain[terrain].defense_bonus
