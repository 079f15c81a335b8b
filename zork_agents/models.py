"""Core domain models.

The world store, the turn engine and the agents all exchange these types.
Pydantic is used for validation and serialisation at every data boundary:
the durable snapshot on disk and the JSON the agents return.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

LogRole = Literal["GM", "PLAYER", "SYSTEM"]


class Coordinates(BaseModel):
    """Grid position of a room on the map."""

    x: int
    y: int


class Room(BaseModel):
    """A node in the world graph."""

    id: str
    name: str = ""
    description: str = ""
    exits: list[str] = Field(default_factory=list)  # direction labels, e.g. "north"
    items: list[str] = Field(default_factory=list)
    visited: bool = False
    coordinates: Coordinates | None = None  # filled in on insertion when absent


class PlayerState(BaseModel):
    """The single player record."""

    current_room_id: str = "start"
    inventory: list[str] = Field(default_factory=list)
    health: int = 100  # conventionally 0–100, never clamped
    status: str = "Healthy"


class LogEntry(BaseModel):
    """One line of the transcript."""

    id: int
    role: LogRole
    text: str
    timestamp: int  # milliseconds since the epoch


class Settings(BaseModel):
    turn_count: int = 0
    game_active: bool = False
    auto_play: bool = False


class GameDatabase(BaseModel):
    """Everything the world store persists, flushed as one snapshot."""

    rooms: dict[str, Room] = Field(default_factory=dict)
    player: PlayerState = Field(default_factory=PlayerState)
    logs: list[LogEntry] = Field(default_factory=list)
    settings: Settings = Field(default_factory=Settings)


# ---------------------------------------------------------------------------
# Agent output
# ---------------------------------------------------------------------------

def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


class PlayerUpdate(BaseModel):
    """Player-state delta proposed by the game master.

    Malformed fields are dropped rather than rejected: a health value that is
    not an integer counts as absent, non-string inventory entries are skipped.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    health: int | None = None
    inventory_to_add: list[str] = Field(default_factory=list)
    inventory_to_remove: list[str] = Field(default_factory=list)

    @field_validator("health", mode="before")
    @classmethod
    def _lenient_health(cls, value: Any) -> int | None:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        logger.warning("Dropping malformed health value %r", value)
        return None

    @field_validator("inventory_to_add", "inventory_to_remove", mode="before")
    @classmethod
    def _lenient_items(cls, value: Any) -> list[str]:
        return _string_list(value)


class Resolution(BaseModel):
    """The game master's verdict on one player action.

    Only ``narrative`` is mandatory. Every other field is independently
    optional; a missing or malformed one is treated as absent.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    narrative: str
    new_room: Room | None = None
    moved_to_room_id: str | None = None
    player_update: PlayerUpdate | None = None

    @field_validator("new_room", mode="before")
    @classmethod
    def _lenient_room(cls, value: Any) -> Any:
        if value is None or isinstance(value, Room):
            return value
        if not isinstance(value, dict) or not isinstance(value.get("id"), str) or not value["id"]:
            logger.warning("Dropping malformed newRoom %r", value)
            return None
        try:
            return Room.model_validate(value)
        except ValidationError as e:
            logger.warning("Dropping invalid newRoom: %s", e)
            return None

    @field_validator("moved_to_room_id", mode="before")
    @classmethod
    def _lenient_target(cls, value: Any) -> str | None:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    @field_validator("player_update", mode="before")
    @classmethod
    def _lenient_update(cls, value: Any) -> Any:
        if isinstance(value, (dict, PlayerUpdate)):
            return value
        return None
