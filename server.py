"""
WebSocket command bridge for a Warfire UI client.

Each connection owns one game session. The client sends JSON commands
({"type": "move", "x": 3, "y": 4}); the server answers with the engine events
those commands produced followed by a fresh state snapshot. AI seats are
played in a background task and their actions are replayed with a pacing
delay so a spectator can follow them.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable, Optional

from dotenv import load_dotenv

import websockets

from warfire import EventChannel, GameConfig, PlayerSeat, TurnManager, WarfireError
from warfire.movement import get_attack_targets, get_move_destinations
from agents import HeuristicAgent

load_dotenv(Path(__file__).parent / ".env")

logger = logging.getLogger(__name__)

DATA_PATH = Path("data")

Send = Callable[[str, dict], Awaitable[None]]


class GameSession:
    """Wraps the engine for a single UI connection."""

    COMMANDS = (
        "new_game", "end_turn", "save", "load", "produce",
        "select_unit", "select_city", "move", "attack", "state",
    )
    # Commands that act on behalf of the player whose turn it is
    PLAYER_COMMANDS = ("end_turn", "produce", "select_unit", "select_city", "move", "attack")

    def __init__(self, config: Optional[GameConfig] = None):
        self.config = config or GameConfig.load("default", DATA_PATH)
        self.events = EventChannel(record=True)
        self.turn_manager: Optional[TurnManager] = None
        self.agent: Optional[HeuristicAgent] = None
        self.ai_lock = asyncio.Lock()
        self.ai_task: Optional[asyncio.Task] = None
        self.ai_active = False  # Set as soon as AI turns are scheduled

    @property
    def ai_running(self) -> bool:
        return self.ai_active or self.ai_lock.locked()

    def initialize(self, options: Optional[dict] = None):
        """Start a new game, optionally overriding scenario settings."""
        options = options or {}
        if "players" in options:
            self.config.players = [
                PlayerSeat(p.get("name", f"Player {i + 1}"), bool(p.get("is_ai", False)))
                for i, p in enumerate(options["players"])
            ]
        for key in ("map_width", "map_height", "seed", "starting_gold"):
            if key in options:
                setattr(self.config, key, options[key])

        self.events.drain()
        self.turn_manager = TurnManager.new_game(self.config, self.events)
        self.agent = HeuristicAgent.create_default(self.turn_manager)
        logger.info(
            f"Game initialized: {len(self.config.players)} players, "
            f"{self.config.map_width}x{self.config.map_height}, seed={self.config.seed}"
        )

    def build_state(self) -> dict:
        """Snapshot plus what the selected unit or city can do."""
        tm = self.turn_manager
        state = tm.snapshot()
        unit = tm.selected_unit
        if unit is not None:
            state["moves"] = [] if unit.has_moved else [
                {"x": t.x, "y": t.y, "cost": t.cost} for t in get_move_destinations(unit, tm.map)
            ]
            state["targets"] = [] if unit.has_attacked else [
                {"x": t.x, "y": t.y} for t in get_attack_targets(unit, tm.map)
            ]
        city = tm.selected_city
        if city is not None:
            gold = tm.current_player.gold
            state["producible"] = [
                {"type": d.id, "name": d.name, "cost": d.cost, "affordable": d.cost <= gold}
                for d in tm.rules.producible_types()
            ]
        state["ai_running"] = self.ai_running
        return state

    def execute(self, msg: dict) -> dict:
        """Apply one synchronous command. Returns {"ok": bool, ...}."""
        msg_type = msg.get("type", "")
        tm = self.turn_manager

        if msg_type == "new_game":
            self.initialize(msg)
            return {"ok": True}
        if tm is None:
            raise WarfireError("No game in progress")
        if msg_type in self.PLAYER_COMMANDS and not tm.is_game_over and tm.current_player.is_ai:
            raise WarfireError(f"{tm.current_player.name} is played by the AI")

        if msg_type == "state":
            return {"ok": True}
        if msg_type == "end_turn":
            return {"ok": tm.end_turn()}
        if msg_type == "save":
            return {"ok": tm.save(msg.get("path"))}
        if msg_type == "load":
            ok = tm.load(msg.get("path"))
            if ok:
                self.agent.bind(tm)
            return {"ok": ok}
        if msg_type == "produce":
            unit = tm.produce(int(msg["x"]), int(msg["y"]), str(msg["unit_type"]))
            return {"ok": unit is not None, "unit": unit.to_dict() if unit else None}
        if msg_type == "select_unit":
            return {"ok": tm.select_unit_at(int(msg["x"]), int(msg["y"]))}
        if msg_type == "select_city":
            return {"ok": tm.select_city_at(int(msg["x"]), int(msg["y"]))}
        if msg_type == "move":
            return {"ok": tm.move_selected(int(msg["x"]), int(msg["y"]))}
        if msg_type == "attack":
            report = tm.attack_selected(int(msg["x"]), int(msg["y"]))
            return {"ok": report is not None, "combat": report.to_dict() if report else None}

        raise WarfireError(f"Unknown message type: {msg_type}")

    async def flush_events(self, send: Send):
        for event in self.events.drain():
            await send("event", event.to_dict())

    async def handle(self, msg: dict, send: Send):
        """Run one command from the client and push the results back."""
        msg_type = msg.get("type", "")
        if self.ai_running:
            await send("error", {"message": "AI turn in progress", "command": msg_type})
            return

        try:
            result = self.execute(msg)
        except WarfireError as e:
            logger.info(f"Command {msg_type} refused: {e}")
            await send("error", {"message": e.message, "command": msg_type})
            return
        except (KeyError, TypeError, ValueError) as e:
            await send("error", {"message": f"Malformed {msg_type} command: {e}", "command": msg_type})
            return

        await self.flush_events(send)
        await send("result", {"command": msg_type, **result})
        await send("state", self.build_state())

        if msg_type in ("new_game", "end_turn", "load"):
            self.start_ai_turns(send)

    def start_ai_turns(self, send: Send) -> Optional[asyncio.Task]:
        """Play any AI seats that are up next, in the background."""
        tm = self.turn_manager
        if tm is None or tm.is_game_over or not tm.current_player.is_ai or self.ai_running:
            return None
        self.ai_active = True
        self.ai_task = asyncio.create_task(self.run_ai_turns(send))
        self.ai_task.add_done_callback(self._on_ai_task_done)
        return self.ai_task

    def _on_ai_task_done(self, task: asyncio.Task):
        self.ai_active = False
        if task.cancelled():
            logger.info("AI turns cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error("AI turns failed", exc_info=error)

    async def run_ai_turns(self, send: Send):
        """Play consecutive AI turns until a human is up or the game ends."""
        try:
            async with self.ai_lock:
                tm = self.turn_manager
                while not tm.is_game_over and tm.current_player.is_ai:
                    player = tm.current_player
                    await send("ai_turn", {"player": player.id, "name": player.name})

                    actions = self.agent.play_turn()
                    for action in actions:
                        await send("ai_action", action.to_dict())
                        if self.config.ai_think_delay > 0:
                            await asyncio.sleep(self.config.ai_think_delay)

                    await self.flush_events(send)
                    if not actions:
                        logger.warning(f"AI for {player.name} did nothing, stopping")
                        break
        finally:
            self.ai_active = False

        await send("state", self.build_state())


async def handle_websocket(websocket):
    """Handle a single WebSocket connection (one game session)."""
    session = GameSession()

    async def send_json(msg_type: str, data: dict):
        await websocket.send(json.dumps({"type": msg_type, **data}, default=str))

    try:
        async for raw in websocket:
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await send_json("error", {"message": "Invalid JSON"})
                continue
            if not isinstance(msg, dict):
                await send_json("error", {"message": "Expected a JSON object"})
                continue

            await session.handle(msg, send_json)

    except websockets.exceptions.ConnectionClosed:
        logger.info("Client disconnected")
    finally:
        if session.ai_task and not session.ai_task.done():
            session.ai_task.cancel()


async def main():
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8080"))

    logger.info(f"Starting server on ws://{host}:{port}")

    async with websockets.serve(
        handle_websocket,
        host,
        port,
        max_size=10 * 1024 * 1024,  # 10MB max message
    ):
        await asyncio.Future()  # run forever


if __name__ == "__main__":
    logging.basicConfig(level=getattr(logging, os.environ.get("WARFIRE_LOG_LEVEL", "INFO").upper(), logging.INFO))
    asyncio.run(main())
