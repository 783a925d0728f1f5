"""Tests for the heuristic AI player."""

import pytest

from agents import AgentConfig, HeuristicAgent
from warfire import PlayerSeat, TurnManager

from conftest import add_city, event_types, place


@pytest.fixture
def ai_manager(manager):
    manager.players[0].is_ai = True
    return manager


@pytest.fixture
def agent(ai_manager):
    return HeuristicAgent(ai_manager, AgentConfig())


def army(plains_map, owner, **counts):
    x = 0
    for unit_type, n in counts.items():
        for _ in range(n):
            place(plains_map, unit_type, owner, x % 10, 9 - x // 10)
            x += 1


@pytest.mark.parametrize("gold,units,expected", [
    (50, {}, "CATAPULT"),
    (10, {"HERO": 1}, "LIGHT_INFANTRY"),
    (30, {"HERO": 1, "LIGHT_INFANTRY": 3}, "CAVALRY"),
    (15, {"HERO": 1, "LIGHT_INFANTRY": 3, "CAVALRY": 2}, "ARCHER"),
    (20, {"HERO": 1, "LIGHT_INFANTRY": 3, "CAVALRY": 2, "ARCHER": 2}, "HEAVY_INFANTRY"),
    (120, {"HERO": 1, "LIGHT_INFANTRY": 3, "CAVALRY": 2, "ARCHER": 2, "HEAVY_INFANTRY": 2}, "DRAGON"),
    (45, {"HERO": 1, "LIGHT_INFANTRY": 3, "CAVALRY": 2, "ARCHER": 2, "HEAVY_INFANTRY": 2}, "CATAPULT"),
    (5, {"HERO": 1, "LIGHT_INFANTRY": 3}, "LIGHT_INFANTRY"),
])
def test_production_ladder(agent, ai_manager, plains_map, gold, units, expected):
    army(plains_map, 0, **units)
    player = ai_manager.players[0]
    player.gold = gold
    assert agent.decide_production(player) == expected


def test_attacks_most_valuable_target_without_moving(agent, ai_manager, plains_map):
    ai_manager.players[0].gold = 0
    add_city(plains_map, 9, 0, owner=0)
    unit = place(plains_map, "LIGHT_INFANTRY", 0, 5, 5)
    hero = place(plains_map, "HERO", 1, 6, 5)
    place(plains_map, "LIGHT_INFANTRY", 1, 4, 5)

    actions = agent.play_turn()
    attacks = [a for a in actions if a.kind == "attack"]
    assert len(attacks) == 1
    assert attacks[0].to_pos == (6, 5)
    assert unit.position == (5, 5)
    assert hero.hp < hero.max_hp
    assert actions[-1].kind == "end_turn"
    assert ai_manager.current_player.id == 1


def test_moves_to_capture_neutral_city(agent, ai_manager, plains_map):
    unit = place(plains_map, "LIGHT_INFANTRY", 0, 1, 1)
    place(plains_map, "HERO", 1, 9, 9)
    city = add_city(plains_map, 3, 1)

    actions = agent.play_turn()
    assert unit.position == (3, 1)
    assert city.owner == 0
    assert [a.kind for a in actions][:1] == ["move"]


def test_hero_heads_for_reachable_ruin(agent, ai_manager, plains_map):
    hero = place(plains_map, "HERO", 0, 1, 1)
    place(plains_map, "HERO", 1, 9, 9)
    plains_map.add_ruin(2, 3)

    actions = agent.play_turn()
    assert hero.position == (2, 3)
    assert len(hero.artifacts) == 1
    assert "explore" in [a.kind for a in actions]


def test_blockaded_city_does_not_produce(agent, ai_manager, plains_map, events):
    add_city(plains_map, 4, 4, owner=0)
    place(plains_map, "HERO", 0, 0, 0)
    place(plains_map, "HERO", 1, 4, 5)
    events.drain()

    actions = agent.play_turn()
    assert "blockaded" in [a.kind for a in actions]
    assert "produce" not in [a.kind for a in actions]
    assert "ai:blockaded" in event_types(events)


def test_producing_spends_gold(agent, ai_manager, plains_map, events):
    add_city(plains_map, 4, 4, owner=0)
    place(plains_map, "HERO", 0, 0, 0)
    place(plains_map, "HERO", 1, 9, 9)
    events.drain()

    actions = agent.play_turn()
    produced = [a for a in actions if a.kind == "produce"]
    assert [a.unit_type for a in produced] == ["LIGHT_INFANTRY"]
    types = event_types(events)
    assert types[0] == "ai:turn_started"
    assert "ai:producing" in types and "ai:turn_ended" in types


def test_expected_damage_scoring_leaves_rng_alone(agent, ai_manager, plains_map):
    unit = place(plains_map, "ARCHER", 0, 5, 5)
    place(plains_map, "HERO", 1, 6, 6)
    state = ai_manager.combat.rng.getstate()
    agent.evaluate_attack_target(unit, 6, 6)
    assert ai_manager.combat.rng.getstate() == state


def test_error_still_ends_turn(agent, ai_manager, plains_map, monkeypatch):
    place(plains_map, "HERO", 0, 0, 0)
    place(plains_map, "HERO", 1, 9, 9)

    def explode(player):
        raise RuntimeError("boom")

    monkeypatch.setattr(agent, "handle_unit_actions", explode)
    actions = agent.play_turn()
    assert [a.kind for a in actions] == ["error", "end_turn"]
    assert ai_manager.current_player.id == 1
    assert not agent.is_running


def test_reentrant_call_is_rejected(agent, ai_manager, plains_map):
    place(plains_map, "HERO", 0, 0, 0)
    agent.is_running = True
    assert agent.play_turn() == []
    assert ai_manager.current_player.id == 0


def test_human_seat_is_not_played(manager, plains_map):
    agent = HeuristicAgent(manager)
    place(plains_map, "HERO", 0, 0, 0)
    assert agent.play_turn() == []
    assert manager.current_player.id == 0


def test_ai_vs_ai_game_keeps_invariants(config):
    config.players = [PlayerSeat("West", is_ai=True), PlayerSeat("East", is_ai=True)]
    tm = TurnManager.new_game(config)
    agent = HeuristicAgent.create_default(tm)

    for _ in range(80):
        if tm.is_game_over:
            break
        agent.play_turn()

        occupied = [u.position for u in tm.map.units.living()]
        assert len(occupied) == len(set(occupied))
        for unit in tm.map.units.living():
            assert 0 < unit.hp <= unit.max_hp
            assert tm.map.get_movement_cost(unit.x, unit.y, unit.unit_type) != float("inf")
        assert all(p.gold >= 0 for p in tm.players)

    alive = [p for p in tm.players if p.is_alive]
    assert len(alive) >= 1
    if tm.is_game_over:
        assert tm.state.winner == alive[0].id


def test_bind_and_reset_follow_a_new_game(agent, config):
    agent.turn_count = 4
    other = TurnManager.new_game(config)
    agent.bind(other)
    agent.reset()
    assert agent.turn_manager is other
    assert agent.map is other.map
    assert agent.turn_count == 0
