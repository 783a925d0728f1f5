"""Tests for reachability, destinations and attack eligibility."""

from warfire import Artifact
from warfire.movement import (
    can_attack, chebyshev_distance, get_attack_targets, get_move_destinations, get_reachable_tiles,
)
from warfire.rules import TerrainType

from conftest import place


def tiles(result):
    return {(t.x, t.y): t for t in result}


def test_reach_respects_budget_on_open_plains(plains_map):
    unit = place(plains_map, "LIGHT_INFANTRY", 0, 5, 5)
    reach = tiles(get_reachable_tiles(unit, plains_map))

    assert (5, 5) not in reach
    assert all(t.cost <= 3 for t in reach.values())
    assert reach[(5, 8)].cost == 3
    assert (5, 9) not in reach
    # Diamond of radius 3 minus the origin
    assert len(reach) == 24


def test_mountains_cost_two(plains_map):
    plains_map.set_terrain(5, 6, TerrainType.MOUNTAINS)
    unit = place(plains_map, "HEAVY_INFANTRY", 0, 5, 5)
    reach = tiles(get_reachable_tiles(unit, plains_map))
    assert reach[(5, 6)].cost == 2
    assert (5, 7) not in reach


def test_cheapest_path_is_used(plains_map):
    # Crossing the mountain (2 + 1) beats walking around it (4)
    plains_map.set_terrain(2, 1, TerrainType.MOUNTAINS)
    unit = place(plains_map, "LIGHT_INFANTRY", 0, 1, 1)
    reach = tiles(get_reachable_tiles(unit, plains_map))
    assert reach[(3, 1)].cost == 3
    assert reach[(2, 1)].cost == 2


def test_water_blocks_everything_but_dragons(plains_map):
    for y in range(10):
        plains_map.set_terrain(3, y, TerrainType.WATER)
    walker = place(plains_map, "CAVALRY", 0, 2, 5)
    flyer = place(plains_map, "DRAGON", 0, 2, 2)

    assert all(x < 3 for x, _ in tiles(get_reachable_tiles(walker, plains_map)))
    assert (4, 2) in tiles(get_reachable_tiles(flyer, plains_map))


def test_enemy_tiles_are_reported_but_not_crossed(plains_map):
    unit = place(plains_map, "LIGHT_INFANTRY", 0, 0, 0)
    place(plains_map, "LIGHT_INFANTRY", 1, 1, 0)
    place(plains_map, "LIGHT_INFANTRY", 1, 0, 1)

    reach = tiles(get_reachable_tiles(unit, plains_map))
    assert set(reach) == {(1, 0), (0, 1)}
    assert all(t.is_enemy for t in reach.values())
    assert get_move_destinations(unit, plains_map) == []


def test_friendly_tiles_are_crossed_but_not_destinations(plains_map):
    unit = place(plains_map, "LIGHT_INFANTRY", 0, 0, 0)
    place(plains_map, "LIGHT_INFANTRY", 0, 1, 0)
    place(plains_map, "LIGHT_INFANTRY", 0, 0, 1)

    destinations = tiles(get_move_destinations(unit, plains_map))
    assert (1, 0) not in destinations
    assert (2, 0) in destinations
    assert (1, 1) in destinations


def test_boots_extend_reach(plains_map):
    hero = place(plains_map, "HERO", 0, 0, 5)
    hero.add_artifact(Artifact("Boots of Speed", movement_bonus=2))
    assert max(t.cost for t in get_reachable_tiles(hero, plains_map)) == 6


def test_attack_targets_use_chebyshev_range(plains_map):
    archer = place(plains_map, "ARCHER", 0, 5, 5)
    place(plains_map, "LIGHT_INFANTRY", 1, 7, 7)  # Diagonal distance 2
    place(plains_map, "LIGHT_INFANTRY", 1, 5, 8)  # Distance 3
    place(plains_map, "LIGHT_INFANTRY", 0, 6, 6)  # Friendly

    targets = get_attack_targets(archer, plains_map)
    assert [(t.x, t.y, t.distance) for t in targets] == [(7, 7, 2)]


def test_can_attack_predicate(plains_map):
    melee = place(plains_map, "CAVALRY", 0, 2, 2)
    enemy = place(plains_map, "ARCHER", 1, 3, 3)

    assert chebyshev_distance(2, 2, 3, 3) == 1
    assert can_attack(melee, 3, 3, plains_map)
    assert not can_attack(melee, 2, 2, plains_map)  # Own tile
    assert not can_attack(melee, 4, 4, plains_map)  # Empty
    assert not can_attack(melee, 12, 3, plains_map)

    melee.has_attacked = True
    assert not can_attack(melee, 3, 3, plains_map)

    melee.has_attacked = False
    plains_map.move_unit(enemy, 4, 4)
    assert not can_attack(melee, 4, 4, plains_map)  # Melee needs adjacency


def test_catapult_hits_at_three(plains_map):
    catapult = place(plains_map, "CATAPULT", 0, 0, 0)
    place(plains_map, "HEAVY_INFANTRY", 1, 3, 1)
    assert can_attack(catapult, 3, 1, plains_map)
