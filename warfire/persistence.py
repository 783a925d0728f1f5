"""
Save and restore games as JSON.

The payload holds the full map (terrain, cities, ruins, units) and the
players. Player unit and city lists are written for readers of the file but
are re-derived from ownership on load.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .exceptions import SaveError, ensure
from .map import City, GameMap
from .rules import CITY_INCOME, TerrainType
from .units import Player, Unit

if TYPE_CHECKING:
    from .turn import TurnManager

logger = logging.getLogger(__name__)

SAVE_VERSION = "1.1.0"
REQUIRED_KEYS = ("map", "players", "current_player", "turn")


class SaveSystem:
    """Reads and writes one save slot on disk."""

    def __init__(self, save_path: Path | str = "saves/warfire_save.json"):
        self.save_path = Path(save_path)

    def build_payload(self, manager: "TurnManager") -> dict:
        game_map = manager.map
        return {
            "version": SAVE_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "map": {
                "width": game_map.width,
                "height": game_map.height,
                "terrain": [[int(t) for t in row] for row in game_map.terrain],
                "cities": [c.to_dict() for c in game_map.cities],
                "ruins": [r.to_dict() for r in game_map.ruins],
                "units": [u.to_dict() for u in game_map.units.living()],
            },
            "players": [
                {
                    "id": p.id,
                    "name": p.name,
                    "is_ai": p.is_ai,
                    "gold": p.gold,
                    "is_alive": p.is_alive,
                    "units": [u.id for u in manager.units_of(p.id)],
                    "cities": [c.id for c in manager.cities_of(p.id)],
                }
                for p in manager.players
            ],
            "current_player": manager.state.current_player_index,
            "turn": manager.state.turn,
        }

    def save(self, manager: "TurnManager", path: Optional[Path | str] = None) -> Path:
        """Write the game to disk. Raises SaveError if the file cannot be written."""
        target = Path(path) if path is not None else self.save_path
        payload = self.build_payload(manager)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "w") as f:
                json.dump(payload, f, indent=2)
        except OSError as e:
            raise SaveError(f"Could not write save file: {e}", {"path": str(target)}) from e

        logger.info(f"Game saved to {target} (turn {payload['turn']})")
        return target

    def load_payload(self, path: Optional[Path | str] = None) -> Optional[dict]:
        """Read a save file. Missing or corrupt files yield None."""
        source = Path(path) if path is not None else self.save_path
        if not source.exists():
            logger.info(f"No save found at {source}")
            return None

        try:
            with open(source) as f:
                payload = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read save {source}: {e}")
            return None

        if not isinstance(payload, dict) or any(k not in payload for k in REQUIRED_KEYS):
            logger.warning(f"Save {source} is missing required sections")
            return None

        if payload.get("version") != SAVE_VERSION:
            logger.info(f"Save version {payload.get('version')} differs from {SAVE_VERSION}, loading anyway")
        return payload

    def has_save(self, path: Optional[Path | str] = None) -> bool:
        return (Path(path) if path is not None else self.save_path).exists()

    def clear(self, path: Optional[Path | str] = None) -> bool:
        target = Path(path) if path is not None else self.save_path
        if target.exists():
            target.unlink()
            return True
        return False


def decode_map(data: dict, template: GameMap) -> GameMap:
    """Rebuild a map from its payload, reusing the template's rules, events and rng."""
    game_map = GameMap(
        data["width"], data["height"],
        rules=template.rules, events=template.events, rng=template.rng,
        generate=False,
    )
    terrain = [[TerrainType(t) for t in row] for row in data["terrain"]]
    ensure(len(terrain) == game_map.height and all(len(row) == game_map.width for row in terrain),
           "Terrain grid does not match map size", width=game_map.width, height=game_map.height)
    game_map.terrain = terrain

    for c in data.get("cities", []):
        ensure(c["size"] in CITY_INCOME, "Unknown city size", size=c["size"])
        game_map.add_city(City(id=c["id"], x=c["x"], y=c["y"], size=c["size"], owner=c.get("owner")))
    for r in data.get("ruins", []):
        ruin = game_map.add_ruin(r["x"], r["y"])
        ruin.explored = bool(r.get("explored", False))
    for u in data.get("units", []):
        unit = Unit.from_dict(u, game_map.rules)
        if not unit.is_alive:
            continue
        ensure(not game_map.get_units_at(unit.x, unit.y), "Two units on one tile", x=unit.x, y=unit.y)
        game_map.add_unit(unit)
    return game_map


def decode_players(data: list[dict]) -> list[Player]:
    return [
        Player(
            id=p["id"],
            name=p["name"],
            is_ai=p.get("is_ai", False),
            gold=p.get("gold", 0),
            is_alive=p.get("is_alive", True),
        )
        for p in data
    ]
