"""
Movement and reach for the Warfire engine.

Reachability is a uniform-cost search over orthogonal steps. Attack reach is
measured with Chebyshev distance, so diagonals count as adjacent.
"""

import heapq
from dataclasses import dataclass

from .map import DIRECTIONS, GameMap
from .units import Unit


@dataclass(frozen=True)
class ReachableTile:
    """A tile a unit can reach this turn."""
    x: int
    y: int
    cost: int
    is_enemy: bool = False  # Holds a living enemy; reached to attack, not to stop


@dataclass(frozen=True)
class AttackTarget:
    """An enemy-held tile within attack range."""
    x: int
    y: int
    distance: int


def chebyshev_distance(x1: int, y1: int, x2: int, y2: int) -> int:
    return max(abs(x1 - x2), abs(y1 - y2))


def manhattan_distance(x1: int, y1: int, x2: int, y2: int) -> int:
    return abs(x1 - x2) + abs(y1 - y2)


def _has_enemy(unit: Unit, game_map: GameMap, x: int, y: int) -> bool:
    return any(u.owner != unit.owner for u in game_map.get_units_at(x, y))


def get_reachable_tiles(unit: Unit, game_map: GameMap) -> list[ReachableTile]:
    """
    Every tile the unit can reach within its effective movement.

    Enemy-held tiles are reported (is_enemy=True) but never expanded.
    Friendly-held tiles are expanded so units can pass through each other;
    they are still not legal destinations, see get_move_destinations.
    The origin tile is not included.
    """
    budget = unit.effective_movement
    origin = (unit.x, unit.y)
    best_cost = {origin: 0}
    open_set = [(0, origin)]
    result: dict[tuple[int, int], ReachableTile] = {}

    while open_set:
        cost, (x, y) = heapq.heappop(open_set)
        if cost > best_cost.get((x, y), float("inf")):
            continue

        for dx, dy in DIRECTIONS:
            nx, ny = x + dx, y + dy
            if not game_map.is_valid(nx, ny):
                continue

            step = game_map.get_movement_cost(nx, ny, unit.unit_type)
            if step == float("inf"):
                continue

            total = cost + int(step)
            if total > budget or total >= best_cost.get((nx, ny), float("inf")):
                continue

            best_cost[(nx, ny)] = total
            is_enemy = _has_enemy(unit, game_map, nx, ny)
            result[(nx, ny)] = ReachableTile(nx, ny, total, is_enemy)
            if not is_enemy:
                heapq.heappush(open_set, (total, (nx, ny)))

    result.pop(origin, None)
    return list(result.values())


def get_move_destinations(unit: Unit, game_map: GameMap) -> list[ReachableTile]:
    """Reachable tiles the unit may actually stop on: empty of any living unit."""
    return [
        tile for tile in get_reachable_tiles(unit, game_map)
        if not tile.is_enemy and not game_map.get_units_at(tile.x, tile.y)
    ]


def get_attack_targets(unit: Unit, game_map: GameMap) -> list[AttackTarget]:
    """Enemy-held tiles within attack range of the unit's current position."""
    targets = []
    reach = unit.range
    for dy in range(-reach, reach + 1):
        for dx in range(-reach, reach + 1):
            if dx == 0 and dy == 0:
                continue
            x, y = unit.x + dx, unit.y + dy
            if game_map.is_valid(x, y) and _has_enemy(unit, game_map, x, y):
                targets.append(AttackTarget(x, y, max(abs(dx), abs(dy))))
    return targets


def can_attack(unit: Unit, x: int, y: int, game_map: GameMap) -> bool:
    """
    Whether the unit may attack the tile right now.

    Ranged units (range > 1) shoot from where they stand; melee units must
    already be adjacent, whether they started there or moved there this turn.
    """
    if unit.hp <= 0 or unit.has_attacked:
        return False
    if not game_map.is_valid(x, y):
        return False
    distance = chebyshev_distance(unit.x, unit.y, x, y)
    if distance < 1 or distance > unit.range:
        return False
    return _has_enemy(unit, game_map, x, y)
