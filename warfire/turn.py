"""
Turn controller for the Warfire engine.

Owns the players, the phase machine and the current selection, and applies
every rule that touches more than one entity: movement with ruin exploration
and city capture, attacks, production, end of turn and the win check.

Commands coming from a UI or an agent return False/None when refused and
leave the game unchanged; the reason goes out as a message event.
"""

import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .combat import CombatReport, TacticalCombat
from .config import GameConfig
from .events import EventChannel, EventType
from .exceptions import WarfireError, ensure
from .map import DIRECTIONS, City, GameMap
from .movement import can_attack, get_move_destinations
from .persistence import SaveSystem, decode_map, decode_players
from .phase import (
    CitySelection, NoSelection, Phase, PhaseMachine, Selection, UnitSelection,
    describe_selection,
)
from .rules import Rulebook, TerrainType
from .units import Player, Unit

logger = logging.getLogger(__name__)

MIN_PLAYERS = 2
MAX_PLAYERS = 4
MIN_MAP_SIZE = 6

# Map size the city and ruin counts are tuned for
REFERENCE_AREA = 20 * 15
NEUTRAL_CITY_SIZES = ["small", "small", "medium", "medium", "large"]
PLACEMENT_ATTEMPTS = 50


@dataclass
class GameState:
    """Turn bookkeeping."""
    turn: int = 1
    current_player_index: int = 0
    game_over: bool = False
    winner: Optional[int] = None  # Player id

    def to_dict(self) -> dict:
        return {
            "turn": self.turn,
            "current_player": self.current_player_index,
            "game_over": self.game_over,
            "winner": self.winner,
        }


class TurnManager:
    """Runs one game: commands, production, turn order and victory."""

    def __init__(
        self,
        game_map: GameMap,
        players: list[Player],
        events: Optional[EventChannel] = None,
        combat: Optional[TacticalCombat] = None,
        config: Optional[GameConfig] = None,
    ):
        ensure(MIN_PLAYERS <= len(players) <= MAX_PLAYERS,
               "Player count must be between 2 and 4", players=len(players))
        self.map = game_map
        self.events = events or game_map.events
        self.map.events = self.events
        self.rules: Rulebook = game_map.rules
        self.players = players
        self.combat = combat or TacticalCombat(self.rules)
        self.config = config or GameConfig()
        self.save_system = SaveSystem(self.config.save_path)

        self.state = GameState()
        self.phase = PhaseMachine(self.events)
        self.selection: Selection = NoSelection()

    @classmethod
    def new_game(cls, config: Optional[GameConfig] = None,
                 events: Optional[EventChannel] = None) -> "TurnManager":
        """Generate a map and lay out starting positions, neutral cities and ruins."""
        config = config or GameConfig()
        ensure(MIN_PLAYERS <= len(config.players) <= MAX_PLAYERS,
               "Player count must be between 2 and 4", players=len(config.players))
        ensure(config.map_width >= MIN_MAP_SIZE and config.map_height >= MIN_MAP_SIZE,
               "Map too small", width=config.map_width, height=config.map_height)

        rng = random.Random(config.seed)
        rules = Rulebook(config.data_path)
        events = events or EventChannel()
        game_map = GameMap(config.map_width, config.map_height, rules, events, rng)
        players = [
            Player(id=i, name=seat.name, is_ai=seat.is_ai, gold=config.starting_gold)
            for i, seat in enumerate(config.players)
        ]
        combat = TacticalCombat(rules, rng_seed=rng.getrandbits(32))

        manager = cls(game_map, players, events=events, combat=combat, config=config)
        manager._setup_starting_positions()
        manager._setup_neutral_cities(rng)
        manager._setup_ruins(rng)

        logger.info(
            f"New game: {config.map_width}x{config.map_height}, "
            f"{len(players)} players, seed={config.seed}, "
            f"{len(game_map.cities)} cities, {len(game_map.ruins)} ruins"
        )
        return manager

    def _setup_starting_positions(self):
        w, h = self.map.width, self.map.height
        corners = [(1, 1), (w - 2, h - 2), (1, h - 2), (w - 2, 1)]
        infantry = self.rules.unit("LIGHT_INFANTRY")

        for player, (x, y) in zip(self.players, corners):
            self.map.set_terrain(x, y, TerrainType.PLAINS)
            self.map.add_city(City(id=f"city_start_{player.id}", x=x, y=y, size="large", owner=player.id))
            self.map.add_unit(Unit.create(self.rules, "HERO", player.id, x, y))

            for lx in (x + 1, x - 1):
                if not self.map.is_valid(lx, y):
                    continue
                if self.map.get_terrain(lx, y) not in infantry.can_enter:
                    self.map.set_terrain(lx, y, TerrainType.PLAINS)
                self.map.add_unit(Unit.create(self.rules, "LIGHT_INFANTRY", player.id, lx, y))

    def _area_ratio(self) -> float:
        return (self.map.width * self.map.height) / REFERENCE_AREA

    def _random_interior_tile(self, rng: random.Random) -> tuple[int, int]:
        return (rng.randint(2, self.map.width - 3), rng.randint(2, self.map.height - 3))

    def _setup_neutral_cities(self, rng: random.Random):
        count = int(rng.randint(4, 6) * self._area_ratio())
        for i in range(count):
            for _ in range(PLACEMENT_ATTEMPTS):
                x, y = self._random_interior_tile(rng)
                if self.map.get_city(x, y) or self.map.get_terrain(x, y) == TerrainType.WATER:
                    continue
                size = rng.choice(NEUTRAL_CITY_SIZES)
                self.map.add_city(City(id=f"city_{i}", x=x, y=y, size=size))
                break

    def _setup_ruins(self, rng: random.Random):
        count = int(rng.randint(5, 8) * self._area_ratio())
        for _ in range(count):
            for _ in range(PLACEMENT_ATTEMPTS):
                x, y = self._random_interior_tile(rng)
                if (self.map.get_city(x, y) or self.map.get_ruin(x, y)
                        or self.map.get_terrain(x, y) == TerrainType.WATER):
                    continue
                self.map.add_ruin(x, y)
                break

    # Views
    @property
    def current_player(self) -> Player:
        return self.players[self.state.current_player_index]

    @property
    def is_game_over(self) -> bool:
        return self.state.game_over

    def get_player(self, player_id: int) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def units_of(self, player_id: int) -> list[Unit]:
        return self.map.units.owned_by(player_id)

    def cities_of(self, player_id: int) -> list[City]:
        return [c for c in self.map.cities if c.owner == player_id]

    def get_hero(self, player_id: int) -> Optional[Unit]:
        for unit in self.units_of(player_id):
            if unit.is_hero:
                return unit
        return None

    @property
    def selected_unit(self) -> Optional[Unit]:
        match self.selection:
            case UnitSelection(unit_id=unit_id):
                unit = self.map.units.get(unit_id)
                return unit if unit is not None and unit.is_alive else None
            case _:
                return None

    @property
    def selected_city(self) -> Optional[City]:
        match self.selection:
            case CitySelection(city_id=city_id):
                return self.map.get_city_by_id(city_id)
            case _:
                return None

    def message(self, text: str, level: int = logging.INFO):
        logger.log(level, text)
        self.events.emit(EventType.MESSAGE, text=text)

    def _reject(self, text: str) -> bool:
        self.message(text, logging.INFO)
        return False

    # Selection commands
    def select_unit_at(self, x: int, y: int) -> bool:
        """Select a unit of the current player on the tile that has not moved yet."""
        if self.is_game_over:
            return self._reject("The game is over")

        player = self.current_player
        unit = next(
            (u for u in self.map.get_units_at(x, y) if u.owner == player.id and not u.has_moved),
            None,
        )
        if unit is None:
            return self._reject("No unit ready to move there")

        self.deselect()
        if not self.phase.transition(Phase.SELECTED):
            return False
        self.selection = UnitSelection(unit.id)
        return True

    def select_city_at(self, x: int, y: int) -> bool:
        """Open production for a city of the current player."""
        if self.is_game_over:
            return self._reject("The game is over")

        city = self.map.get_city(x, y)
        if city is None or city.owner != self.current_player.id:
            return self._reject("You do not own a city there")

        self.deselect()
        if not self.phase.transition(Phase.PRODUCTION):
            return False
        self.selection = CitySelection(city.id)
        return True

    def deselect(self) -> bool:
        self.selection = NoSelection()
        if self.phase.phase in (Phase.SELECTED, Phase.MOVED, Phase.PRODUCTION):
            return self.phase.transition(Phase.IDLE)
        return True

    def move_selected(self, x: int, y: int) -> bool:
        """Move the selected unit. It stays selected while it can still attack."""
        unit = self.selected_unit
        if unit is None or self.phase.phase != Phase.SELECTED:
            return self._reject("Select a unit that has not moved first")

        if not self.move_unit(unit, x, y):
            return False

        if self.is_game_over:
            return True
        if unit.is_alive and not unit.has_attacked:
            self.phase.transition(Phase.MOVED)
        else:
            self.deselect()
        return True

    def attack_selected(self, x: int, y: int) -> Optional[CombatReport]:
        """Attack with the selected unit. The selection is always cleared afterwards."""
        unit = self.selected_unit
        if unit is None or self.phase.phase not in (Phase.SELECTED, Phase.MOVED):
            self._reject("Select a unit first")
            return None

        report = self.perform_attack(unit, x, y)
        if report is not None and not self.is_game_over:
            self.deselect()
        return report

    # Rules shared by UI and agents
    def move_unit(self, unit: Unit, x: int, y: int) -> bool:
        """
        Move a unit of the current player to a legal destination.

        A hero stepping on an unexplored ruin takes its artifact. Entering a
        neutral city, or an enemy city with no defenders, captures it.
        """
        if self.is_game_over:
            return self._reject("The game is over")
        if unit.owner != self.current_player.id or not unit.is_alive:
            return self._reject("That unit cannot act now")
        if unit.has_moved:
            return self._reject(f"{unit.name} has already moved")

        if not any(t.x == x and t.y == y for t in get_move_destinations(unit, self.map)):
            return self._reject("Cannot move there")

        self.map.move_unit(unit, x, y)

        if unit.is_hero and self.map.get_ruin(x, y):
            artifact = self.map.explore_ruin(x, y)
            if artifact:
                unit.add_artifact(artifact)
                self.events.emit(EventType.ARTIFACT_FOUND, unit_id=unit.id, artifact=artifact.to_dict())
                self.message(f"{self.current_player.name} found {artifact.name}!")

        city = self.map.get_city(x, y)
        if city and city.owner != unit.owner:
            defenders = [u for u in self.map.get_units_at(x, y) if u.owner != unit.owner]
            if city.owner is None or not defenders:
                self.capture_city(city, unit.owner)
        return True

    def perform_attack(self, attacker: Unit, x: int, y: int) -> Optional[CombatReport]:
        if self.is_game_over:
            self._reject("The game is over")
            return None
        if attacker.owner != self.current_player.id:
            self._reject("That unit cannot act now")
            return None
        if not can_attack(attacker, x, y, self.map):
            self._reject("No valid target there")
            return None

        report = self.combat.perform_attack(attacker, self.map.get_stack(x, y), self.map)
        if report is None:
            return None

        if report.captured_city is not None:
            self.capture_city(report.captured_city, attacker.owner)
        if report.defender_died or report.attacker_died:
            self.check_win_condition()
        return report

    def capture_city(self, city: City, new_owner: int):
        old_owner = city.change_owner(new_owner)
        self.events.emit(
            EventType.CITY_CAPTURED,
            city_id=city.id, x=city.x, y=city.y,
            old_owner=old_owner, new_owner=new_owner,
        )
        captor = self.get_player(new_owner)
        self.message(f"{captor.name if captor else new_owner} captured a {city.size} city")
        self.check_win_condition()

    def _spawn_tile(self, city: City, unit_type: str) -> Optional[tuple[int, int]]:
        """City tile when empty, else the first enterable empty orthogonal neighbor."""
        if not self.map.get_units_at(city.x, city.y):
            return (city.x, city.y)
        for dx, dy in DIRECTIONS:
            x, y = city.x + dx, city.y + dy
            if not self.map.is_valid(x, y):
                continue
            if self.map.get_movement_cost(x, y, unit_type) == float("inf"):
                continue
            if not self.map.get_units_at(x, y):
                return (x, y)
        return None

    def produce_unit(self, city: City, unit_type: str) -> Optional[Unit]:
        """Buy a unit in a city. The new unit cannot act until next turn."""
        if self.is_game_over:
            self._reject("The game is over")
            return None

        player = self.current_player
        definition = self.rules.unit(unit_type)
        if city.owner != player.id:
            self._reject("You do not own that city")
            return None
        if definition.is_hero:
            self._reject(f"{definition.name} cannot be produced")
            return None
        if self.map.is_city_blockaded(city, player.id):
            self._reject("City is blockaded by enemy units")
            return None
        if not player.spend_gold(definition.cost):
            self._reject(f"Not enough gold for {definition.name}")
            return None

        spawn = self._spawn_tile(city, unit_type)
        if spawn is None:
            player.add_gold(definition.cost)
            self._reject("No room to place the new unit")
            return None

        unit = Unit.create(self.rules, unit_type, player.id, *spawn)
        unit.has_moved = True
        unit.has_attacked = True
        self.map.add_unit(unit)

        self.events.emit(EventType.UNIT_PRODUCED, unit=unit.to_dict(), city_id=city.id)
        self.events.emit(EventType.PLAYER_GOLD_CHANGED, player_id=player.id,
                         gold=player.gold, delta=-definition.cost)
        self.message(f"Produced {definition.name}!")
        return unit

    def produce(self, x: int, y: int, unit_type: str) -> Optional[Unit]:
        """Produce in the city at a tile, or the selected city when no tile matches."""
        city = self.map.get_city(x, y) or self.selected_city
        if city is None:
            self._reject("No city there")
            return None
        return self.produce_unit(city, unit_type)

    # Turn flow
    def end_turn(self) -> bool:
        """Collect income, heal, reset units and pass play to the next living player."""
        if self.is_game_over:
            return False

        player = self.current_player
        income = sum(c.income for c in self.cities_of(player.id))
        if income:
            player.add_gold(income)
            self.events.emit(EventType.PLAYER_GOLD_CHANGED, player_id=player.id,
                             gold=player.gold, delta=income)

        self.map.heal_units_in_cities()
        for unit in self.map.units.living():
            unit.reset_turn()

        self._advance_player()
        self.deselect()

        next_player = self.current_player
        self.events.emit(EventType.PLAYER_CHANGED, player_id=next_player.id,
                         name=next_player.name, is_ai=next_player.is_ai, turn=self.state.turn)
        logger.info(f"Turn {self.state.turn}: {next_player.name} to play (gold {next_player.gold})")

        self.check_win_condition()
        return True

    def _advance_player(self):
        count = len(self.players)
        for _ in range(count):
            self.state.current_player_index = (self.state.current_player_index + 1) % count
            if self.state.current_player_index == 0:
                self.state.turn += 1
            if self.current_player.is_alive:
                return

    def check_win_condition(self) -> Optional[Player]:
        """Defeat players with no hero and no city. Returns the winner once one remains."""
        for player in self.players:
            if not player.is_alive:
                continue
            if self.get_hero(player.id) is None and not self.cities_of(player.id):
                player.defeat(self.state.turn)
                self.events.emit(EventType.PLAYER_DEFEATED, player_id=player.id, turn=self.state.turn)
                self.message(f"{player.name} has been defeated")

        alive = [p for p in self.players if p.is_alive]
        if len(alive) != 1:
            return None

        winner = alive[0]
        if not self.state.game_over:
            self.state.game_over = True
            self.state.winner = winner.id
            self.selection = NoSelection()
            self.phase.transition(Phase.GAME_OVER)
            self.events.emit(EventType.GAME_OVER, winner=winner.id, name=winner.name, turn=self.state.turn)
            logger.info(f"Game over: {winner.name} wins on turn {self.state.turn}")
        return winner

    # Persistence
    def save(self, path: Optional[Path | str] = None) -> bool:
        try:
            target = self.save_system.save(self, path)
        except WarfireError as e:
            logger.error(f"Save failed: {e}")
            self.message("Save failed")
            return False
        self.events.emit(EventType.GAME_SAVED, path=str(target), turn=self.state.turn)
        self.message("Game saved!")
        return True

    def load(self, path: Optional[Path | str] = None) -> bool:
        """Replace the running game with a saved one. The phase returns to IDLE."""
        payload = self.save_system.load_payload(path)
        if payload is None:
            return self._reject("No save found!")

        # Nothing is replaced until the whole payload has been checked
        try:
            game_map = decode_map(payload["map"], self.map)
            players = decode_players(payload["players"])
            turn = int(payload["turn"])
            current = int(payload["current_player"])
            self._check_loaded_game(game_map, players, turn, current)
        except (KeyError, TypeError, ValueError, WarfireError) as e:
            logger.warning(f"Save payload is malformed: {e}")
            return self._reject("Save file is corrupt")

        self.map = game_map
        self.players = players
        self.state = GameState(turn=turn, current_player_index=current)
        self.selection = NoSelection()
        self.phase.reset()

        alive = [p for p in players if p.is_alive]
        if len(alive) == 1:
            self.state.game_over = True
            self.state.winner = alive[0].id
            self.phase.transition(Phase.GAME_OVER)

        self.events.emit(EventType.GAME_LOADED, turn=self.state.turn,
                         current_player=self.state.current_player_index)
        self.message("Game loaded!")
        return True

    @staticmethod
    def _check_loaded_game(game_map: GameMap, players: list[Player], turn: int, current: int):
        ensure(MIN_PLAYERS <= len(players) <= MAX_PLAYERS,
               "Player count must be between 2 and 4", players=len(players))
        ensure([p.id for p in players] == list(range(len(players))),
               "Player ids must match seat order")
        ensure(0 <= current < len(players), "Current player out of range", current=current)
        ensure(turn >= 1, "Turn must be positive", turn=turn)

        owners = {p.id for p in players}
        ensure(all(u.owner in owners for u in game_map.units.living()), "Unit owned by unknown player")
        ensure(all(c.owner is None or c.owner in owners for c in game_map.cities),
               "City owned by unknown player")

    def snapshot(self) -> dict:
        """Full JSON-friendly view of the game for UI clients."""
        payload = self.save_system.build_payload(self)
        payload.update({
            "phase": self.phase.phase.value,
            "selection": describe_selection(self.selection),
            "game_over": self.state.game_over,
            "winner": self.state.winner,
        })
        return payload
