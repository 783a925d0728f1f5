"""Tests for damage calculation and attack resolution."""

import pytest

from warfire import TacticalCombat, Unit
from warfire.units import Stack

from conftest import FixedRandom, add_city, event_types, place


def combat(rules, factor=1.0, crit_roll=0.99):
    return TacticalCombat(rules, rng=FixedRandom(factor, crit_roll))


def test_hero_versus_light_infantry_without_variance(rules):
    hero = Unit.create(rules, "HERO", 0, 0, 0)
    infantry = Unit.create(rules, "LIGHT_INFANTRY", 1, 1, 0)
    roll = combat(rules).calculate_damage(hero, infantry)
    # 2*7 - 0.5*2 = 13
    assert roll.damage == 13
    assert not roll.critical
    assert roll.type_multiplier == 1.0


def test_critical_hit_doubles_damage(rules):
    hero = Unit.create(rules, "HERO", 0, 0, 0)
    infantry = Unit.create(rules, "LIGHT_INFANTRY", 1, 1, 0)
    roll = combat(rules, crit_roll=0.0).calculate_damage(hero, infantry)
    assert roll.critical
    assert roll.damage == 26


def test_terrain_bonus_reduces_damage(rules):
    hero = Unit.create(rules, "HERO", 0, 0, 0)
    infantry = Unit.create(rules, "LIGHT_INFANTRY", 1, 1, 0)
    assert combat(rules).calculate_damage(hero, infantry, terrain_bonus=1).damage == 12
    assert combat(rules).calculate_damage(hero, infantry, terrain_bonus=2).damage == 12  # 14 - 2 = 12


def test_minimum_damage_floor(rules):
    infantry = Unit.create(rules, "LIGHT_INFANTRY", 0, 0, 0)
    dragon = Unit.create(rules, "DRAGON", 1, 1, 0)
    # (6 - 2.5) * 0.6 = 2.1, floored up to 15% of 50
    assert combat(rules).calculate_damage(infantry, dragon).damage == 7


def test_type_advantage_applies(rules):
    cavalry = Unit.create(rules, "CAVALRY", 0, 0, 0)
    archer = Unit.create(rules, "ARCHER", 1, 1, 0)
    roll = combat(rules).calculate_damage(cavalry, archer)
    assert roll.type_multiplier == 1.5
    assert roll.damage == int((12 - 0.5) * 1.5)


def test_damage_is_monotonic_in_attack(rules):
    defender = Unit.create(rules, "HEAVY_INFANTRY", 1, 1, 0)
    resolver = combat(rules, factor=0.9)
    previous = -1
    for unit_type in ("LIGHT_INFANTRY", "ARCHER", "CAVALRY", "HERO", "CATAPULT", "DRAGON"):
        attacker = Unit.create(rules, unit_type, 0, 0, 0)
        # Neutralise matchups to isolate the attack stat
        resolver.rules.type_advantage.pop((unit_type, "HEAVY_INFANTRY"), None)
        damage = resolver.calculate_damage(attacker, defender).damage
        assert damage >= previous
        previous = damage


@pytest.mark.parametrize("attacker,defender,chance", [
    ("CAVALRY", "ARCHER", 0.30),
    ("CATAPULT", "CAVALRY", 0.10),
    ("HERO", "LIGHT_INFANTRY", 0.20),
    ("CAVALRY", "LIGHT_INFANTRY", 0.20),  # 1.2 is not above the threshold
])
def test_crit_chance_shifts_with_matchup(rules, attacker, defender, chance):
    resolver = TacticalCombat(rules, rng_seed=1)
    assert resolver.crit_chance(rules.type_multiplier(attacker, defender)) == pytest.approx(chance)


def test_expected_damage_consumes_no_randomness(rules):
    resolver = TacticalCombat(rules, rng_seed=9)
    state = resolver.rng.getstate()
    hero = Unit.create(rules, "HERO", 0, 0, 0)
    infantry = Unit.create(rules, "LIGHT_INFANTRY", 1, 1, 0)
    assert resolver.expected_damage(hero, infantry) == 13
    assert resolver.rng.getstate() == state


def test_seeded_rolls_are_reproducible(rules):
    hero = Unit.create(rules, "HERO", 0, 0, 0)
    infantry = Unit.create(rules, "LIGHT_INFANTRY", 1, 1, 0)
    a = TacticalCombat(rules, rng_seed=123)
    b = TacticalCombat(rules, rng_seed=123)
    assert [a.calculate_damage(hero, infantry) for _ in range(20)] == \
           [b.calculate_damage(hero, infantry) for _ in range(20)]


def test_random_damage_stays_in_band(rules):
    hero = Unit.create(rules, "HERO", 0, 0, 0)
    infantry = Unit.create(rules, "LIGHT_INFANTRY", 1, 1, 0)
    resolver = TacticalCombat(rules, rng_seed=2024)
    for _ in range(500):
        roll = resolver.calculate_damage(hero, infantry)
        low, high = (20, 31) if roll.critical else (10, 15)
        assert low <= roll.damage <= high


def test_perform_attack_damages_and_spends_attacker(plains_map, rules, events):
    hero = place(plains_map, "HERO", 0, 1, 1)
    target = place(plains_map, "HEAVY_INFANTRY", 1, 2, 1)
    events.drain()

    report = combat(rules).perform_attack(hero, plains_map.get_stack(2, 1), plains_map)
    assert report.damage == 12  # 14 - 2
    assert target.hp == 35 - 12
    assert not report.defender_died
    assert hero.has_moved and hero.has_attacked
    assert event_types(events) == ["unit:damaged", "combat:resolved"]


def test_lethal_attack_removes_defender_and_flags_capture(plains_map, rules, events):
    hero = place(plains_map, "HERO", 0, 1, 1)
    place(plains_map, "LIGHT_INFANTRY", 1, 2, 1, hp=5)
    city = add_city(plains_map, 2, 1, owner=1)
    events.drain()

    report = combat(rules).perform_attack(hero, plains_map.get_stack(2, 1), plains_map)
    assert report.defender_died
    assert report.captured_city is city
    assert report.to_dict()["city_captured"] == city.id
    assert plains_map.get_units_at(2, 1) == []
    assert "unit:removed" in event_types(events)


def test_no_capture_of_own_city(plains_map, rules):
    archer = place(plains_map, "ARCHER", 0, 1, 1)
    place(plains_map, "LIGHT_INFANTRY", 1, 3, 1, hp=1)
    add_city(plains_map, 3, 1, owner=0)
    report = combat(rules).perform_attack(archer, plains_map.get_stack(3, 1), plains_map)
    assert report.defender_died
    assert report.captured_city is None


def test_empty_stack_yields_no_report(plains_map, rules):
    hero = place(plains_map, "HERO", 0, 1, 1)
    assert combat(rules).perform_attack(hero, Stack(2, 1, []), plains_map) is None
    assert not hero.has_attacked
