"""
Headless game runner for Warfire.

Plays AI-vs-AI games to completion (or a turn cap) and writes a JSON game log.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from warfire import EventChannel, EventType, GameConfig, GameEvent, PlayerSeat, TurnManager
from agents import HeuristicAgent

load_dotenv(Path(__file__).parent / ".env")

logger = logging.getLogger(__name__)

# Events worth keeping in the game log
LOGGED_EVENTS = {
    EventType.COMBAT_RESOLVED,
    EventType.CITY_CAPTURED,
    EventType.UNIT_PRODUCED,
    EventType.RUIN_EXPLORED,
    EventType.PLAYER_DEFEATED,
    EventType.GAME_OVER,
}


class WarfireSimulation:
    """Runs one game where every seat is played by the heuristic AI."""

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        log_dir: Optional[Path | str] = "logs",
    ):
        self.config = config or GameConfig()
        for seat in self.config.players:
            seat.is_ai = True
        self.log_dir = Path(log_dir) if log_dir is not None else None

        self.events = EventChannel()
        self.events.subscribe_all(self._on_event)
        self.turn_manager: Optional[TurnManager] = None
        self.agent: Optional[HeuristicAgent] = None

        self.game_log: list[dict] = []
        self.start_time: Optional[datetime] = None

    def initialize(self):
        """Start a new game."""
        logger.info(f"Initializing game: {self.config.map_width}x{self.config.map_height}, "
                    f"{len(self.config.players)} players, seed={self.config.seed}")
        self.turn_manager = TurnManager.new_game(self.config, self.events)
        self.agent = HeuristicAgent.create_default(self.turn_manager)
        self.start_time = datetime.now()

        self._log_event("game_start", {
            "config": self.config.to_dict(),
            "map": self.turn_manager.map.get_stats(),
        })

    def _on_event(self, event: GameEvent):
        if event.type in LOGGED_EVENTS:
            self._log_event(event.type.value, event.data)

    def run_turn(self) -> dict:
        """Let the current player take its turn."""
        tm = self.turn_manager
        player = tm.current_player
        turn = tm.state.turn

        actions = self.agent.play_turn()
        turn_log = {
            "turn": turn,
            "player": player.id,
            "name": player.name,
            "gold": player.gold,
            "actions": [a.to_dict() for a in actions],
            "units": len(tm.units_of(player.id)),
            "cities": len(tm.cities_of(player.id)),
        }
        self._log_event("turn_complete", turn_log)
        logger.info(f"Turn {turn} {player.name}: {len(actions)} actions, "
                    f"{turn_log['units']} units, {turn_log['cities']} cities, {player.gold} gold")
        return turn_log

    def run_game(self, max_turns: int = 200) -> dict:
        """Run until someone wins or the turn cap is passed."""
        self.initialize()

        while not self.turn_manager.is_game_over and self.turn_manager.state.turn <= max_turns:
            self.run_turn()

        results = self._compile_results()
        self._log_event("game_end", results)
        if self.log_dir is not None:
            self._save_game_log()
        return results

    def _compile_results(self) -> dict:
        tm = self.turn_manager
        return {
            "turns_played": tm.state.turn,
            "winner": tm.state.winner,
            "game_over": tm.state.game_over,
            "players": [
                {
                    "id": p.id,
                    "name": p.name,
                    "alive": p.is_alive,
                    "gold": p.gold,
                    "units": len(tm.units_of(p.id)),
                    "cities": len(tm.cities_of(p.id)),
                }
                for p in tm.players
            ],
            "duration": str(datetime.now() - self.start_time) if self.start_time else None,
        }

    def _log_event(self, event_type: str, data: dict):
        self.game_log.append({
            "timestamp": datetime.now().isoformat(),
            "event": event_type,
            "data": data,
        })

    def _save_game_log(self) -> Path:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = self.log_dir / f"game_{timestamp}.json"

        with open(log_path, "w") as f:
            json.dump(self.game_log, f, indent=2, default=str)

        logger.info(f"Game log saved to: {log_path}")
        return log_path


def main():
    """Run a headless Warfire game."""
    import argparse

    parser = argparse.ArgumentParser(description="Warfire headless AI-vs-AI runner")
    parser.add_argument("--scenario", default="default", help="Scenario name")
    parser.add_argument("--turns", type=int, default=200, help="Turn cap")
    parser.add_argument("--players", type=int, default=None, help="Override player count (2-4)")
    parser.add_argument("--seed", type=int, default=None, help="RNG seed")
    parser.add_argument("--data", default="data", help="Data directory path")
    parser.add_argument("--logs", default="logs", help="Log directory path")

    args = parser.parse_args()

    config = GameConfig.load(args.scenario, args.data)
    if args.seed is not None:
        config.seed = args.seed
    if args.players is not None:
        config.players = [
            config.players[i] if i < len(config.players) else PlayerSeat(f"Player {i + 1}")
            for i in range(args.players)
        ]
    logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO))

    sim = WarfireSimulation(config, log_dir=args.logs)
    results = sim.run_game(max_turns=args.turns)

    print("\n" + "=" * 60)
    print("FINAL RESULTS")
    print("=" * 60)
    print(f"Turns played: {results['turns_played']}")
    print(f"Winner: {results['winner']}")
    for p in results["players"]:
        status = "alive" if p["alive"] else "defeated"
        print(f"  {p['name']}: {status}, {p['units']} units, {p['cities']} cities, {p['gold']} gold")
    print(f"Duration: {results['duration']}")


if __name__ == "__main__":
    main()
