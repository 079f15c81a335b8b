"""JSON file world store.

The whole world (rooms, the player, the transcript and the settings
counters) lives in one ``GameDatabase`` record that is dumped to a single
JSON file after every mutating call. There is no database or ORM; the
"queries" below are plain methods over the in-memory record.

Layout:

    {base}/
      zork_agents_db_v1.json   ← the full snapshot (one fixed key)

A snapshot that cannot be read or parsed is treated as absent and the
store starts from the initial empty world.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from zork_agents.models import (
    GameDatabase,
    LogEntry,
    LogRole,
    PlayerState,
    Room,
    Settings,
)

logger = logging.getLogger(__name__)

DB_KEY = "zork_agents_db_v1"
MAX_LOG_ENTRIES = 100
EXPORT_DESCRIPTION_CHARS = 30


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _sql_quote(text: str) -> str:
    return text.replace("'", "''")


class WorldStore:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._base.mkdir(parents=True, exist_ok=True)
        self._data = self._load()

    # ------------------------------------------------------------------
    # Durability
    # ------------------------------------------------------------------

    @property
    def snapshot_path(self) -> Path:
        return self._base / f"{DB_KEY}.json"

    def _load(self) -> GameDatabase:
        path = self.snapshot_path
        if not path.is_file():
            return GameDatabase()
        try:
            return GameDatabase.model_validate_json(path.read_text())
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Discarding unreadable snapshot %s: %s", path, e)
            return GameDatabase()

    def save(self) -> None:
        self.snapshot_path.write_text(self._data.model_dump_json(indent=2))

    def reset(self) -> None:
        """Replace everything with the initial empty world and flush."""
        self._data = GameDatabase()
        self.save()
        logger.info("World store reset")

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------

    def get_room(self, room_id: str) -> Room | None:
        room = self._data.rooms.get(room_id)
        return room.model_copy(deep=True) if room is not None else None

    def list_rooms(self) -> list[Room]:
        return [r.model_copy(deep=True) for r in self._data.rooms.values()]

    def upsert_room(self, room: Room) -> None:
        """Insert a room, or replace the whole record stored under its id."""
        self._data.rooms[room.id] = room.model_copy(deep=True)
        self.save()

    # ------------------------------------------------------------------
    # Player
    # ------------------------------------------------------------------

    def get_player(self) -> PlayerState:
        return self._data.player.model_copy(deep=True)

    def update_player(self, fields: dict[str, Any]) -> PlayerState:
        """Shallow-merge fields over the player record. Returns the result."""
        merged = self._data.player.model_dump()
        merged.update(fields)
        self._data.player = PlayerState.model_validate(merged)
        self.save()
        return self.get_player()

    # ------------------------------------------------------------------
    # Transcript (bounded, append-only)
    # ------------------------------------------------------------------

    def append_log(self, role: LogRole, text: str) -> LogEntry:
        now = _now_ms()
        logs = self._data.logs
        # ids stay strictly increasing even when two entries share a millisecond
        entry_id = max(now, logs[-1].id + 1) if logs else now
        entry = LogEntry(id=entry_id, role=role, text=text, timestamp=now)
        logs.append(entry)
        while len(logs) > MAX_LOG_ENTRIES:
            logs.pop(0)
        self.save()
        return entry.model_copy()

    def get_logs(self) -> list[LogEntry]:
        return [e.model_copy() for e in self._data.logs]

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self) -> Settings:
        return self._data.settings.model_copy()

    def update_settings(self, fields: dict[str, Any]) -> Settings:
        merged = self._data.settings.model_dump()
        merged.update(fields)
        self._data.settings = Settings.model_validate(merged)
        self.save()
        return self.get_settings()

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def export_snapshot(self) -> str:
        """Render a SQL-dump-looking view of the store. Display only, never read back."""
        lines = [f"-- Database Dump {datetime.now(timezone.utc).isoformat()}", ""]

        lines.append("CREATE TABLE rooms (id TEXT PRIMARY KEY, name TEXT, description TEXT);")
        for room in self._data.rooms.values():
            short = room.description[:EXPORT_DESCRIPTION_CHARS]
            lines.append(
                f"INSERT INTO rooms VALUES ('{room.id}', '{_sql_quote(room.name)}', '{short}...');"
            )

        player = self._data.player
        inventory = json.dumps(player.inventory, separators=(",", ":"))
        lines.append("")
        lines.append("CREATE TABLE player (id INTEGER PRIMARY KEY, health INTEGER, inventory TEXT);")
        lines.append(f"INSERT INTO player VALUES (1, {player.health}, '{inventory}');")

        return "\n".join(lines) + "\n"
