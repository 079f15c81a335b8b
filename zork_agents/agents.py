"""LLM-backed agents: room generator, player and game master.

Each agent is an async callable matching one of the protocols below. The
turn engine only depends on the protocols, so tests swap in plain stubs.

The LLM implementations never let a backend failure escape: a dead
connection, a template error or an unparseable reply is logged and replaced
by the agent's fallback (the default start room, "wait", or a confused
game master). Whatever still escapes is the turn engine's problem.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from zork_agents.llm import LLM, LLMError
from zork_agents.models import Coordinates, PlayerState, Resolution, Room
from zork_agents.prompts import (
    GAME_MASTER_PROMPT,
    PLAYER_PROMPT,
    START_ROOM_PROMPT,
    PromptError,
    game_master_context,
    player_context,
    render_prompt,
)

logger = logging.getLogger(__name__)

START_ROOM_ID = "start"
WAIT_ACTION = "wait"
IDLE_ACTION = "look around"
CONFUSED_NARRATIVE = "The game master is confused. Try again."

DEFAULT_START_ROOM = Room(
    id=START_ROOM_ID,
    name="West of House",
    description=(
        "You are standing in an open field west of a white house, "
        "with a boarded front door. There is a small mailbox here."
    ),
    exits=["north", "south", "west"],
    items=["mailbox"],
    visited=True,
    coordinates=Coordinates(x=0, y=0),
)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

class RoomGenerator(Protocol):
    async def __call__(self) -> Room: ...


class PlayerAgent(Protocol):
    async def __call__(
        self, room: Room, transcript_tail: list[str], inventory: list[str]
    ) -> str: ...


class GameMaster(Protocol):
    async def __call__(
        self,
        action: str,
        current_room: Room,
        known_rooms: dict[str, Room],
        player: PlayerState,
    ) -> Resolution: ...


# ---------------------------------------------------------------------------
# Output parsing
# ---------------------------------------------------------------------------

def parse_json_object(output: str) -> dict[str, Any]:
    """Pull the JSON object out of an LLM reply.

    Tolerates markdown code fences and chatter around the object.
    """
    start = output.find("{")
    end = output.rfind("}")
    if start == -1 or end < start:
        raise ValueError(f"No JSON object in agent output: {output[:80]!r}")
    try:
        data = json.loads(output[start : end + 1])
    except json.JSONDecodeError as e:
        raise ValueError(f"Agent returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Agent output must be a JSON object, got {type(data).__name__}")
    return data


# ---------------------------------------------------------------------------
# LLM implementations
# ---------------------------------------------------------------------------

class LLMRoomGenerator:
    """Asks the LLM for the opening room; falls back to West of House."""

    def __init__(self, llm: LLM) -> None:
        self._llm = llm

    async def __call__(self) -> Room:
        try:
            output = await self._llm("room_generator", START_ROOM_PROMPT)
            data = parse_json_object(output)
            data.update(id=START_ROOM_ID, visited=True, coordinates={"x": 0, "y": 0})
            return Room.model_validate(data)
        except (LLMError, ValueError) as e:
            # pydantic's ValidationError is a ValueError
            logger.warning("Start room generation failed, using default: %s", e)
            return DEFAULT_START_ROOM.model_copy(deep=True)


class LLMPlayerAgent:
    def __init__(self, llm: LLM, max_words: int = 5) -> None:
        self._llm = llm
        self._max_words = max_words

    async def __call__(
        self, room: Room, transcript_tail: list[str], inventory: list[str]
    ) -> str:
        try:
            prompt = render_prompt(
                PLAYER_PROMPT,
                player_context(room, transcript_tail, inventory, self._max_words),
            )
            output = await self._llm("player", prompt)
        except (LLMError, PromptError) as e:
            logger.warning("Player agent failed, waiting instead: %s", e)
            return WAIT_ACTION
        action = output.strip().strip('"').strip()
        return action.splitlines()[0].strip() if action else IDLE_ACTION


class LLMGameMaster:
    def __init__(self, llm: LLM) -> None:
        self._llm = llm

    async def __call__(
        self,
        action: str,
        current_room: Room,
        known_rooms: dict[str, Room],
        player: PlayerState,
    ) -> Resolution:
        try:
            prompt = render_prompt(
                GAME_MASTER_PROMPT,
                game_master_context(action, current_room, known_rooms, player),
            )
            output = await self._llm("game_master", prompt)
            return Resolution.model_validate(parse_json_object(output))
        except (LLMError, PromptError, ValueError) as e:
            logger.warning("Game master failed to resolve %r: %s", action, e)
            return Resolution(narrative=CONFUSED_NARRATIVE)
