"""
Warfire rule engine for turn-based territorial strategy.

Core modules:
- rules: Terrain, unit archetypes, artifacts, type matchups
- map: Square grid with cities, ruins and the unit roster
- units: Unit, stack and player state
- movement: Reachability and attack range
- combat/: Attack resolution
- phase: Interaction phases and selection
- turn: Commands, production, turn order and victory
- persistence: JSON save/load
"""

from .rules import Rulebook, TerrainType, UnitDefinition, Artifact, CITY_INCOME
from .map import GameMap, City, Ruin
from .units import Unit, Stack, Player, UnitRoster
from .movement import (
    ReachableTile, AttackTarget, get_reachable_tiles, get_move_destinations,
    get_attack_targets, can_attack, chebyshev_distance, manhattan_distance,
)
from .combat import CombatReport, CombatResolver, DamageRoll, TacticalCombat
from .events import EventChannel, EventType, GameEvent
from .phase import Phase, PhaseMachine, NoSelection, UnitSelection, CitySelection
from .config import GameConfig, PlayerSeat
from .persistence import SaveSystem
from .turn import TurnManager, GameState
from .exceptions import WarfireError, InvariantError, SaveError

__all__ = [
    # Rules
    "Rulebook", "TerrainType", "UnitDefinition", "Artifact", "CITY_INCOME",
    # Map
    "GameMap", "City", "Ruin",
    # Units
    "Unit", "Stack", "Player", "UnitRoster",
    # Movement
    "ReachableTile", "AttackTarget", "get_reachable_tiles", "get_move_destinations",
    "get_attack_targets", "can_attack", "chebyshev_distance", "manhattan_distance",
    # Combat
    "CombatReport", "CombatResolver", "DamageRoll", "TacticalCombat",
    # Events
    "EventChannel", "EventType", "GameEvent",
    # Turn Management
    "Phase", "PhaseMachine", "NoSelection", "UnitSelection", "CitySelection",
    "GameConfig", "PlayerSeat", "SaveSystem", "TurnManager", "GameState",
    # Errors
    "WarfireError", "InvariantError", "SaveError",
]
