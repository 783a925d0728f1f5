"""
Heuristic AI player.

Plays a full turn in three phases: city production, unit actions (strongest
units first), then hero actions. Every decision is a scored greedy pick over
the same legal moves a human has. The turn is synchronous and returns an
action log; pacing for spectators is the caller's business.
"""

import logging
from typing import Optional

from warfire.events import EventType
from warfire.map import City, GameMap
from warfire.movement import (
    ReachableTile, can_attack, get_attack_targets, get_move_destinations, manhattan_distance,
)
from warfire.rules import TerrainType
from warfire.turn import TurnManager
from warfire.units import Player, Unit

from .base import Agent, AgentAction, AgentConfig

logger = logging.getLogger(__name__)

# Attack scoring
HERO_TARGET_BONUS = 100
DRAGON_TARGET_BONUS = 80
CATAPULT_TARGET_BONUS = 50
WOUNDED_TARGET_WEIGHT = 30
DAMAGE_SHARE_WEIGHT = 20
KILL_BONUS = 50
CITY_ASSAULT_BONUS = 40

# Move scoring
RUIN_BONUS = 60
NEUTRAL_CITY_BONUS = 50
UNDEFENDED_CITY_BONUS = 45
DEFENDED_CITY_BONUS = 20
OWN_CITY_BONUS = 5
APPROACH_ENEMY_BONUS = 15
APPROACH_NEUTRAL_CITY_BONUS = 25
TERRAIN_BONUS = {TerrainType.FOREST: 5, TerrainType.MOUNTAINS: 8}
MOVE_COST_PENALTY = 2


class HeuristicAgent(Agent):
    """Greedy scoring AI for one or more computer-controlled seats."""

    def __init__(self, turn_manager: TurnManager, config: Optional[AgentConfig] = None):
        super().__init__(turn_manager, config)
        self.actions: list[AgentAction] = []

    @classmethod
    def create_default(cls, turn_manager: TurnManager) -> "HeuristicAgent":
        return cls(turn_manager, AgentConfig(name="heuristic"))

    @property
    def map(self) -> GameMap:
        # Looked up each time; loading a save replaces the map
        return self.turn_manager.map

    def play_turn(self) -> list[AgentAction]:
        if self.is_running:
            logger.warning("AI turn already running, ignoring re-entrant call")
            return []

        player = self.turn_manager.current_player
        if not player.is_ai or not player.is_alive or self.turn_manager.is_game_over:
            return []

        self.is_running = True
        self.turn_count += 1
        self.actions = []
        self.events.emit(EventType.AI_TURN_STARTED, player_id=player.id, name=player.name)
        logger.info(f"AI turn {self.turn_count} for {player.name} (gold {player.gold})")

        try:
            self.handle_production(player)
            if not self.turn_manager.is_game_over:
                self.handle_unit_actions(player)
            if not self.turn_manager.is_game_over:
                self.handle_hero_actions(player)
        except Exception as e:
            logger.exception(f"AI error during {player.name}'s turn")
            self._record("error", player, detail={"error": str(e)})
        finally:
            self.is_running = False

        self.events.emit(EventType.AI_TURN_ENDED, player_id=player.id, name=player.name,
                         actions=len(self.actions))
        if self.turn_manager.end_turn():
            self._record("end_turn", player)
        return list(self.actions)

    def _record(self, kind: str, player: Player, **fields) -> AgentAction:
        action = AgentAction(kind=kind, player_id=player.id, **fields)
        self.actions.append(action)
        return action

    # Phase 1: production
    def handle_production(self, player: Player):
        for city in self.turn_manager.cities_of(player.id):
            if self.map.is_city_blockaded(city, player.id):
                self.events.emit(EventType.AI_BLOCKADED, player_id=player.id, city_id=city.id)
                self._record("blockaded", player, city_id=city.id, to_pos=city.position)
                continue

            unit_type = self.decide_production(player)
            if player.gold < self.turn_manager.rules.unit(unit_type).cost:
                continue

            self.events.emit(EventType.AI_PRODUCING, player_id=player.id,
                             city_id=city.id, unit_type=unit_type)
            unit = self.turn_manager.produce_unit(city, unit_type)
            if unit is not None:
                self._record("produce", player, unit_id=unit.id, unit_type=unit_type,
                             city_id=city.id, to_pos=unit.position)

    def decide_production(self, player: Player) -> str:
        """Pick a unit type from current army composition and gold."""
        gold = player.gold
        counts: dict[str, int] = {}
        for unit in self.turn_manager.units_of(player.id):
            counts[unit.unit_type] = counts.get(unit.unit_type, 0) + 1

        # No hero left: it cannot be rebuilt, so buy strength instead
        if counts.get("HERO", 0) == 0 and gold >= 50:
            if gold >= 40:
                return "CATAPULT"
            if gold >= 30:
                return "CAVALRY"

        if counts.get("LIGHT_INFANTRY", 0) < 3 and gold >= 10:
            return "LIGHT_INFANTRY"
        if counts.get("CAVALRY", 0) < 2 and gold >= 30:
            return "CAVALRY"
        if counts.get("ARCHER", 0) < 2 and gold >= 15:
            return "ARCHER"
        if counts.get("HEAVY_INFANTRY", 0) < 2 and gold >= 20:
            return "HEAVY_INFANTRY"

        if gold >= 100:
            return "DRAGON"
        if gold >= 40:
            return "CATAPULT"
        if gold >= 30:
            return "CAVALRY"
        if gold >= 20:
            return "HEAVY_INFANTRY"
        if gold >= 15:
            return "ARCHER"
        return "LIGHT_INFANTRY"

    # Phase 2: unit actions
    def unit_priority(self, unit: Unit) -> float:
        d = unit.definition
        return (d.attack * self.config.attack_weight
                + d.defense * self.config.defense_weight
                + d.hp * self.config.hp_weight)

    def handle_unit_actions(self, player: Player):
        units = sorted(
            (u for u in self.turn_manager.units_of(player.id) if not u.is_hero),
            key=self.unit_priority,
            reverse=True,
        )
        for unit in units:
            if self.turn_manager.is_game_over:
                return
            if not unit.is_alive or (unit.has_moved and unit.has_attacked):
                continue
            self.handle_single_unit(unit, player)

    def handle_single_unit(self, unit: Unit, player: Player):
        if not unit.has_attacked:
            best = self.best_attack(unit)
            if best is not None and best[1] > 0:
                self._attack(unit, player, best[0], best[1])
                return

        if unit.has_moved:
            return

        target = self.find_best_move_target(unit, get_move_destinations(unit, self.map), player)
        if target is None:
            return

        self._move(unit, player, target)
        if unit.is_alive and not unit.has_attacked and not self.turn_manager.is_game_over:
            best = self.best_attack(unit)
            if best is not None:
                self._attack(unit, player, best[0], best[1])

    def best_attack(self, unit: Unit) -> Optional[tuple[tuple[int, int], float]]:
        """Highest-scoring legal attack from where the unit stands."""
        best = None
        for target in get_attack_targets(unit, self.map):
            if not can_attack(unit, target.x, target.y, self.map):
                continue
            score = self.evaluate_attack_target(unit, target.x, target.y)
            if best is None or score > best[1]:
                best = ((target.x, target.y), score)
        return best

    def evaluate_attack_target(self, unit: Unit, x: int, y: int) -> float:
        """Score hitting a tile. Uses expected damage, so no randomness is consumed."""
        stack = self.map.get_stack(x, y)
        enemy = stack.combat_unit() if stack else None
        if enemy is None:
            return -1000

        score = 0.0
        if enemy.is_hero:
            score += HERO_TARGET_BONUS
        if enemy.unit_type == "DRAGON":
            score += DRAGON_TARGET_BONUS
        if enemy.unit_type == "CATAPULT":
            score += CATAPULT_TARGET_BONUS

        score += (1 - enemy.hp / enemy.max_hp) * WOUNDED_TARGET_WEIGHT

        damage = self.turn_manager.combat.expected_damage(unit, enemy, self.map.get_defense_bonus(x, y))
        score += min(1.0, damage / max(1, enemy.hp)) * DAMAGE_SHARE_WEIGHT
        if damage >= enemy.hp:
            score += KILL_BONUS

        city = self.map.get_city(x, y)
        if city and city.owner != unit.owner:
            score += CITY_ASSAULT_BONUS
        return score

    # Movement scoring
    def find_best_move_target(self, unit: Unit, tiles: list[ReachableTile],
                              player: Player) -> Optional[ReachableTile]:
        best, best_score = None, None
        for tile in tiles:
            score = self.evaluate_move_target(unit, tile.x, tile.y, player) - tile.cost * MOVE_COST_PENALTY
            if best_score is None or score > best_score:
                best, best_score = tile, score
        return best

    def evaluate_move_target(self, unit: Unit, x: int, y: int, player: Player) -> float:
        score = 0.0

        if unit.is_hero and self.map.get_ruin(x, y):
            score += RUIN_BONUS

        city = self.map.get_city(x, y)
        if city:
            if city.owner is None:
                score += NEUTRAL_CITY_BONUS
            elif city.owner != player.id:
                defenders = [u for u in self.map.get_units_at(x, y) if u.owner != player.id]
                score += DEFENDED_CITY_BONUS if defenders else UNDEFENDED_CITY_BONUS
            else:
                score += OWN_CITY_BONUS

        enemy = self.find_nearest_enemy(unit, player)
        if enemy and (manhattan_distance(x, y, enemy.x, enemy.y)
                      < manhattan_distance(unit.x, unit.y, enemy.x, enemy.y)):
            score += APPROACH_ENEMY_BONUS

        neutral = self.find_nearest_neutral_city(unit)
        if neutral and (manhattan_distance(x, y, neutral.x, neutral.y)
                        < manhattan_distance(unit.x, unit.y, neutral.x, neutral.y)):
            score += APPROACH_NEUTRAL_CITY_BONUS

        score += TERRAIN_BONUS.get(self.map.get_terrain(x, y), 0)
        return score

    def find_nearest_enemy(self, unit: Unit, player: Player) -> Optional[Unit]:
        enemies = [u for u in self.map.units.living() if u.owner != player.id]
        if not enemies:
            return None
        return min(enemies, key=lambda e: manhattan_distance(unit.x, unit.y, e.x, e.y))

    def find_nearest_neutral_city(self, unit: Unit) -> Optional[City]:
        neutral = [c for c in self.map.cities if c.owner is None]
        if not neutral:
            return None
        return min(neutral, key=lambda c: manhattan_distance(unit.x, unit.y, c.x, c.y))

    # Phase 3: hero
    def handle_hero_actions(self, player: Player):
        hero = self.turn_manager.get_hero(player.id)
        if hero is None or hero.has_moved:
            return

        destinations = get_move_destinations(hero, self.map)

        ruin = next((t for t in destinations if self.map.get_ruin(t.x, t.y)), None)
        if ruin is not None:
            self._move(hero, player, ruin)
            return

        for tile in destinations:
            city = self.map.get_city(tile.x, tile.y)
            if city and city.owner != player.id:
                self._move(hero, player, tile)
                return

        target = self.find_best_move_target(hero, destinations, player)
        if target is not None:
            self._move(hero, player, target)

    # Execution
    def _move(self, unit: Unit, player: Player, tile: ReachableTile):
        origin = unit.position
        had_ruin = self.map.get_ruin(tile.x, tile.y) is not None
        artifacts_before = len(unit.artifacts)

        if not self.turn_manager.move_unit(unit, tile.x, tile.y):
            return
        self._record("move", player, unit_id=unit.id, unit_type=unit.unit_type,
                     from_pos=origin, to_pos=unit.position)

        if had_ruin and len(unit.artifacts) > artifacts_before:
            self._record("explore", player, unit_id=unit.id, to_pos=unit.position,
                         detail={"artifact": unit.artifacts[-1].name})

    def _attack(self, unit: Unit, player: Player, target: tuple[int, int], score: float):
        origin = unit.position
        report = self.turn_manager.perform_attack(unit, *target)
        if report is None:
            return
        self._record("attack", player, unit_id=unit.id, unit_type=unit.unit_type,
                     from_pos=origin, to_pos=target, score=round(score, 2),
                     detail=report.to_dict())
