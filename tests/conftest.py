"""Shared test fixtures and helpers."""

import random

import pytest

from warfire import (
    City, EventChannel, GameConfig, GameMap, Player, PlayerSeat, Rulebook,
    TacticalCombat, TurnManager, Unit,
)


class FixedRandom(random.Random):
    """Random whose variance draw and crit roll are pinned."""

    def __init__(self, factor: float = 1.0, crit_roll: float = 0.99):
        super().__init__(0)
        self.factor = factor
        self.crit_roll = crit_roll

    def uniform(self, a, b):
        return self.factor

    def random(self):
        return self.crit_roll


# --- Fixtures ---


@pytest.fixture
def rules():
    """Built-in rule tables (no schema files)."""
    return Rulebook()


@pytest.fixture
def events():
    """Event channel that records everything emitted."""
    return EventChannel(record=True)


@pytest.fixture
def rng():
    """Deterministic RNG seeded at 42."""
    return random.Random(42)


@pytest.fixture
def plains_map(rules, events, rng):
    """10x10 all-plains map with nothing on it."""
    return make_map(10, 10, rules, events, rng)


@pytest.fixture
def manager(plains_map, events):
    """Two-player game on the empty plains map with no-variance, no-crit combat."""
    return make_manager(plains_map, events=events)


@pytest.fixture
def config(tmp_path):
    """Small seeded config that saves into a temp dir."""
    return GameConfig(
        map_width=12,
        map_height=10,
        players=[PlayerSeat("Alice", is_ai=False), PlayerSeat("Bot", is_ai=True)],
        seed=7,
        data_path=str(tmp_path / "no_data"),
        save_path=str(tmp_path / "saves" / "game.json"),
        ai_think_delay=0.0,
    )


# --- Helper functions ---


def make_map(width, height, rules=None, events=None, rng=None) -> GameMap:
    """Handcrafted map: all plains, no cities, ruins or units."""
    return GameMap(width, height, rules=rules or Rulebook(), events=events or EventChannel(record=True),
                   rng=rng or random.Random(42), generate=False)


def make_manager(game_map, players=2, events=None, combat=None, config=None) -> TurnManager:
    roster = [Player(id=i, name=f"Player {i + 1}") for i in range(players)]
    combat = combat or TacticalCombat(game_map.rules, rng=FixedRandom())
    return TurnManager(game_map, roster, events=events or game_map.events, combat=combat, config=config)


def place(game_map, unit_type, owner, x, y, **fields) -> Unit:
    """Put a fresh unit on the map."""
    unit = Unit.create(game_map.rules, unit_type, owner, x, y)
    for key, value in fields.items():
        setattr(unit, key, value)
    game_map.add_unit(unit)
    return unit


def add_city(game_map, x, y, size="small", owner=None, city_id=None) -> City:
    city = City(id=city_id or f"city_{x}_{y}", x=x, y=y, size=size, owner=owner)
    game_map.add_city(city)
    return city


def event_types(events) -> list[str]:
    """Drain a recording channel into a list of event names."""
    return [e.type.value for e in events.drain()]
