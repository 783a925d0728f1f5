"""
Automated players for the Warfire engine.

Uses greedy scoring heuristics for decision making.
"""

from .base import Agent, AgentAction, AgentConfig
from .heuristic import HeuristicAgent

__all__ = ["Agent", "AgentAction", "AgentConfig", "HeuristicAgent"]
