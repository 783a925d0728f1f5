"""
Combat resolution for the Warfire engine.
"""

from .base import CombatReport, CombatResolver
from .tactical import DamageRoll, TacticalCombat

__all__ = [
    "CombatReport",
    "CombatResolver",
    "DamageRoll",
    "TacticalCombat",
]
