"""
Tactical combat resolution - one unit strikes the defender of a tile.

Handles:
- Type matchups (rock-paper-scissors multiplier table)
- Terrain defense
- Critical hits
- Death and city-capture reporting
"""

import logging
import math
import random
from dataclasses import dataclass
from typing import Optional

from ..events import EventType
from ..map import GameMap
from ..rules import Rulebook
from ..units import Stack, Unit
from .base import CombatReport, CombatResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DamageRoll:
    """Result of a single damage calculation."""
    damage: int
    critical: bool
    type_multiplier: float


class TacticalCombat(CombatResolver):
    """Resolves attacks between units on the grid."""

    MINIMUM_DAMAGE_RATIO = 0.15  # Of the defender's max hp
    VARIANCE = 0.2
    BASE_CRIT_CHANCE = 0.20
    CRIT_ADVANTAGE_THRESHOLD = 1.2
    CRIT_DISADVANTAGE_THRESHOLD = 0.9
    CRIT_SHIFT = 0.10

    def __init__(
        self,
        rules: Optional[Rulebook] = None,
        rng_seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(rng_seed=rng_seed, rng=rng)
        self.rules = rules or Rulebook()

    def type_multiplier(self, attacker: Unit, defender: Unit) -> float:
        return self.rules.type_multiplier(attacker.unit_type, defender.unit_type)

    def base_damage(self, attacker: Unit, defender: Unit, terrain_bonus: int = 0) -> float:
        """Damage before variance and crits, floored at a share of the defender's max hp."""
        multiplier = self.type_multiplier(attacker, defender)
        raw = (2 * attacker.effective_attack
               - 0.5 * (defender.effective_defense + terrain_bonus)) * multiplier
        return max(raw, self.MINIMUM_DAMAGE_RATIO * defender.max_hp)

    def expected_damage(self, attacker: Unit, defender: Unit, terrain_bonus: int = 0) -> int:
        """Mean damage without drawing from the RNG. Used for planning."""
        return math.floor(self.base_damage(attacker, defender, terrain_bonus))

    def crit_chance(self, multiplier: float) -> float:
        chance = self.BASE_CRIT_CHANCE
        if multiplier > self.CRIT_ADVANTAGE_THRESHOLD:
            chance += self.CRIT_SHIFT
        elif multiplier < self.CRIT_DISADVANTAGE_THRESHOLD:
            chance -= self.CRIT_SHIFT
        return chance

    def calculate_damage(self, attacker: Unit, defender: Unit, terrain_bonus: int = 0) -> DamageRoll:
        """Roll damage for one strike. One-shot kills are allowed."""
        multiplier = self.type_multiplier(attacker, defender)
        damage = self.roll(self.base_damage(attacker, defender, terrain_bonus), self.VARIANCE)

        critical = self.hit_check(self.crit_chance(multiplier))
        if critical:
            damage *= 2

        return DamageRoll(damage=math.floor(damage), critical=critical, type_multiplier=multiplier)

    def perform_attack(self, attacker: Unit, defender_stack: Stack, game_map: GameMap) -> Optional[CombatReport]:
        """
        Strike the stack's combat unit.

        The attacker's turn is always spent. The returned report flags a city
        capture when the defender died and nothing hostile is left on its
        city tile; applying the capture is up to the caller.
        """
        defender = defender_stack.combat_unit()
        if defender is None:
            return None

        terrain_bonus = game_map.get_defense_bonus(defender.x, defender.y)
        roll = self.calculate_damage(attacker, defender, terrain_bonus)

        died = defender.take_damage(roll.damage)
        game_map.events.emit(EventType.UNIT_DAMAGED, unit_id=defender.id,
                             damage=roll.damage, hp=defender.hp)
        if died:
            game_map.remove_unit(defender)

        attacker.has_moved = True
        attacker.has_attacked = True

        report = CombatReport(
            attacker_id=attacker.id,
            defender_id=defender.id,
            attacker_owner=attacker.owner,
            defender_owner=defender.owner,
            damage=roll.damage,
            critical=roll.critical,
            type_multiplier=roll.type_multiplier,
            terrain_bonus=terrain_bonus,
            defender_hp=defender.hp,
            defender_died=died,
            attacker_died=attacker.hp <= 0,
            location=(defender.x, defender.y),
        )

        if roll.critical:
            report.notes.append("critical hit")
        if roll.type_multiplier > 1.0:
            report.notes.append(f"{attacker.name} has the advantage over {defender.name}")
        elif roll.type_multiplier < 1.0:
            report.notes.append(f"{attacker.name} is disadvantaged against {defender.name}")

        city = game_map.get_city(defender.x, defender.y)
        if city and died and not report.attacker_died and city.owner != attacker.owner:
            hostile = [u for u in game_map.get_units_at(city.x, city.y) if u.owner != attacker.owner]
            if not hostile:
                report.captured_city = city

        logger.debug(
            f"{attacker.name} ({attacker.id}) hit {defender.name} ({defender.id}) "
            f"for {roll.damage}{' (crit)' if roll.critical else ''}, hp left {defender.hp}"
        )
        game_map.events.emit(EventType.COMBAT_RESOLVED, **report.to_dict())
        return report
