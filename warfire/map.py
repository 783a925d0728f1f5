"""
Grid map for the Warfire engine.

Square tiles addressed as (x, y), origin top-left. Terrain is stored row-major
(terrain[y][x]). Movement and adjacency are orthogonal (4 directions).
"""

import logging
import random
from dataclasses import dataclass
from typing import Optional

from .events import EventChannel, EventType
from .exceptions import ensure
from .rules import CITY_INCOME, Artifact, Rulebook, TerrainType
from .units import Stack, Unit, UnitRoster

logger = logging.getLogger(__name__)

# Down, up, right, left
DIRECTIONS = [(0, 1), (0, -1), (1, 0), (-1, 0)]

# Fraction of tiles converted from plains during generation
TERRAIN_RATIOS = [
    (TerrainType.FOREST, 0.20),
    (TerrainType.MOUNTAINS, 0.15),
    (TerrainType.WATER, 0.05),
]


@dataclass
class City:
    """A city tile. owner is a player id or None for neutral."""
    id: str
    x: int
    y: int
    size: str = "small"  # "small", "medium", "large"
    owner: Optional[int] = None

    @property
    def income(self) -> int:
        return CITY_INCOME[self.size]

    @property
    def position(self) -> tuple[int, int]:
        return (self.x, self.y)

    def change_owner(self, new_owner: Optional[int]) -> Optional[int]:
        old_owner = self.owner
        self.owner = new_owner
        return old_owner

    def to_dict(self) -> dict:
        return {"id": self.id, "x": self.x, "y": self.y, "size": self.size, "owner": self.owner}


@dataclass
class Ruin:
    """Treasure site. Yields one artifact, then stays inert."""
    x: int
    y: int
    explored: bool = False

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "explored": self.explored}


class GameMap:
    """
    Terrain grid plus everything standing on it.

    The map owns the unit roster; any change of a unit's position must go
    through move_unit so the tile index stays consistent.
    """

    def __init__(
        self,
        width: int,
        height: int,
        rules: Optional[Rulebook] = None,
        events: Optional[EventChannel] = None,
        rng: Optional[random.Random] = None,
        generate: bool = True,
    ):
        ensure(width > 0 and height > 0, "Map dimensions must be positive",
               width=width, height=height)
        self.width = width
        self.height = height
        self.rules = rules or Rulebook()
        self.events = events or EventChannel()
        self.rng = rng or random.Random()

        self.terrain: list[list[TerrainType]] = [
            [TerrainType.PLAINS for _ in range(width)] for _ in range(height)
        ]
        self.cities: list[City] = []
        self.ruins: list[Ruin] = []
        self.units = UnitRoster()

        if generate:
            self.generate()

    # Generation
    def generate(self):
        """Seed plains, then grow forest, mountain and water patches."""
        self.terrain = [[TerrainType.PLAINS for _ in range(self.width)] for _ in range(self.height)]
        for terrain, ratio in TERRAIN_RATIOS:
            self._add_patches(terrain, ratio)
        logger.debug(f"Generated {self.width}x{self.height} map: {self.get_stats()['terrain_distribution']}")

    def _add_patches(self, terrain: TerrainType, ratio: float):
        """Random-walk flood from random plains seeds until the target count is met."""
        target = int(self.width * self.height * ratio)
        plains_left = sum(row.count(TerrainType.PLAINS) for row in self.terrain)
        target = min(target, plains_left)
        placed = 0

        while placed < target:
            x = self.rng.randint(0, self.width - 1)
            y = self.rng.randint(0, self.height - 1)
            if self.terrain[y][x] != TerrainType.PLAINS:
                continue

            self.terrain[y][x] = terrain
            placed += 1
            for nx, ny in self.get_neighbors(x, y):
                if (self.rng.random() < 0.5 and placed < target
                        and self.terrain[ny][nx] == TerrainType.PLAINS):
                    self.terrain[ny][nx] = terrain
                    placed += 1

    # Spatial queries
    def is_valid(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get_neighbors(self, x: int, y: int) -> list[tuple[int, int]]:
        """Orthogonal neighbors inside the map."""
        return [(x + dx, y + dy) for dx, dy in DIRECTIONS if self.is_valid(x + dx, y + dy)]

    def get_terrain(self, x: int, y: int) -> Optional[TerrainType]:
        return self.terrain[y][x] if self.is_valid(x, y) else None

    def set_terrain(self, x: int, y: int, terrain: TerrainType):
        """Overwrite one tile; only used while laying out a new game."""
        ensure(self.is_valid(x, y), "Invalid coordinates", x=x, y=y)
        self.terrain[y][x] = terrain

    def get_defense_bonus(self, x: int, y: int) -> int:
        terrain = self.get_terrain(x, y)
        return self.rules.defense_bonus(terrain) if terrain is not None else 0

    def get_movement_cost(self, x: int, y: int, unit_type: str) -> float:
        """Cost to enter a tile; inf when the tile is impassable for the type."""
        terrain = self.get_terrain(x, y)
        definition = self.rules.unit(unit_type)
        if terrain is None or terrain not in definition.can_enter:
            return float("inf")
        return self.rules.movement_cost(terrain)

    def get_city(self, x: int, y: int) -> Optional[City]:
        for city in self.cities:
            if city.x == x and city.y == y:
                return city
        return None

    def get_city_by_id(self, city_id: str) -> Optional[City]:
        for city in self.cities:
            if city.id == city_id:
                return city
        return None

    def get_ruin(self, x: int, y: int) -> Optional[Ruin]:
        """Unexplored ruin at a tile, if any."""
        for ruin in self.ruins:
            if ruin.x == x and ruin.y == y and not ruin.explored:
                return ruin
        return None

    def get_units_at(self, x: int, y: int) -> list[Unit]:
        return self.units.at(x, y)

    def get_stack(self, x: int, y: int) -> Optional[Stack]:
        units = self.get_units_at(x, y)
        return Stack(x, y, units) if units else None

    # Mutations
    def add_unit(self, unit: Unit):
        ensure(self.is_valid(unit.x, unit.y), "Invalid coordinates", x=unit.x, y=unit.y)
        self.units.add(unit)

    def move_unit(self, unit: Unit, x: int, y: int):
        ensure(self.is_valid(x, y), "Invalid coordinates", x=x, y=y)
        from_x, from_y = unit.x, unit.y
        self.units.relocate(unit, x, y)
        unit.has_moved = True
        self.events.emit(
            EventType.UNIT_MOVED,
            unit_id=unit.id, owner=unit.owner,
            from_x=from_x, from_y=from_y, to_x=x, to_y=y,
        )

    def remove_unit(self, unit: Unit) -> bool:
        if self.units.remove(unit):
            self.events.emit(EventType.UNIT_REMOVED, unit_id=unit.id, owner=unit.owner,
                             x=unit.x, y=unit.y, unit_type=unit.unit_type)
            return True
        return False

    def add_city(self, city: City):
        ensure(self.is_valid(city.x, city.y), "Invalid coordinates", x=city.x, y=city.y)
        self.cities.append(city)

    def add_ruin(self, x: int, y: int) -> Ruin:
        ensure(self.is_valid(x, y), "Invalid coordinates", x=x, y=y)
        ruin = Ruin(x, y)
        self.ruins.append(ruin)
        return ruin

    def explore_ruin(self, x: int, y: int) -> Optional[Artifact]:
        """Mark a ruin explored and draw one artifact. None if missing or already explored."""
        ruin = next((r for r in self.ruins if r.x == x and r.y == y), None)
        if ruin is None or ruin.explored:
            return None
        ruin.explored = True
        artifact = self.rng.choice(self.rules.artifacts)
        self.events.emit(EventType.RUIN_EXPLORED, x=x, y=y, artifact=artifact.to_dict())
        return artifact

    def heal_units_in_cities(self):
        """Each owned city heals its owner's units on it by 20% of max hp."""
        for city in self.cities:
            if city.owner is None:
                continue
            for unit in self.get_units_at(city.x, city.y):
                if unit.owner != city.owner:
                    continue
                healed = unit.heal(int(unit.max_hp * 0.2))
                if healed > 0:
                    self.events.emit(EventType.UNIT_HEALED, unit_id=unit.id,
                                     amount=healed, hp=unit.hp)
                    self.events.emit(EventType.CITY_HEALED_UNIT, city_id=city.id,
                                     unit_id=unit.id, amount=healed)

    def is_city_blockaded(self, city: City, owner_id: Optional[int]) -> bool:
        """True if a living unit of another owner stands orthogonally next to the city."""
        for nx, ny in self.get_neighbors(city.x, city.y):
            if any(u.owner != owner_id for u in self.get_units_at(nx, ny)):
                return True
        return False

    # Utility
    def get_stats(self) -> dict:
        """Get map statistics."""
        terrain_counts = {t.name.lower(): 0 for t in TerrainType}
        for row in self.terrain:
            for terrain in row:
                terrain_counts[terrain.name.lower()] += 1

        return {
            "total_tiles": self.width * self.height,
            "terrain_distribution": terrain_counts,
            "cities": len(self.cities),
            "neutral_cities": sum(1 for c in self.cities if c.owner is None),
            "unexplored_ruins": sum(1 for r in self.ruins if not r.explored),
            "living_units": len(self.units.living()),
        }
