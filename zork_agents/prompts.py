"""Handlebars prompt rendering for the three agents."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import pybars

from zork_agents.models import PlayerState, Room


_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Templates ────────────────────────────────────────────

START_ROOM_PROMPT = """\
Create the starting room for a Zork-like text adventure.
It should be atmospheric, slightly mysterious, and classic.
The id must be "start".

Return only a JSON object, no other text:
{"id": "start", "name": "<name>", "description": "<prose>", "exits": ["north", ...], "items": ["<item>", ...]}
"""

PLAYER_PROMPT = """\
You are a Player Agent in a text adventure game.

Current Room: {{{room.name}}}
Description: {{{room.description}}}
Visible Exits: {{{exits}}}
Visible Items: {{{items}}}
Your Inventory: {{{inventory}}}

Recent History:
{{#each history}}{{{this}}}
{{/each}}
Your Goal: Explore the map, find treasure, survive.
Instructions:
1. Choose a logical action (Move, Take, Examine, Use).
2. Do not repeat failed actions immediately.
3. Be curious.

Output ONLY the action string (e.g. "go north", "take sword", "examine rug").
Keep it short (max {{max_words}} words).
"""

GAME_MASTER_PROMPT = """\
You are the Game Master (GM).

World State:
- Current Room: {{{room_json}}}
- Player Inventory: {{{inventory_json}}}
- Player Health: {{health}}
- Existing Room IDs: {{{known_rooms}}}

Player Action: "{{{action}}}"

Task:
Resolve the action.
- If it is a movement command (e.g. "go north"):
  - If the exit exists and leads to a KNOWN room, move the player there (movedToRoomId).
  - If the exit exists but is UNKNOWN, generate a NEW room (newRoom) and move the player into it.
    - New room ids should be descriptive (e.g. "forest_path", "dungeon_hall").
    - Give it coordinates consistent with the current room at x:{{x}}, y:{{y}}.
  - If the exit does not exist, narrate the failure.
- If it is an item interaction (take, drop, use), update the inventory (playerUpdate).

Keep a coherent, Zork-like tone. Gloomy, witty, mysterious.

Return only a JSON object, no other text. Only "narrative" is required:
{"narrative": "<what happens>",
 "newRoom": {"id": "<id>", "name": "<name>", "description": "<prose>", "exits": [], "items": [], "coordinates": {"x": 0, "y": 0} },
 "movedToRoomId": "<room id>",
 "playerUpdate": {"health": 100, "inventoryToAdd": [], "inventoryToRemove": []} }
"""


# ── Context builders ─────────────────────────────────────


def player_context(
    room: Room, history: list[str], inventory: list[str], max_words: int = 5
) -> dict[str, Any]:
    return {
        "room": room.model_dump(),
        "exits": ", ".join(room.exits),
        "items": ", ".join(room.items),
        "inventory": ", ".join(inventory) or "Empty",
        "history": list(history),
        "max_words": max_words,
    }


def game_master_context(
    action: str,
    room: Room,
    known_rooms: dict[str, Room],
    player: PlayerState,
) -> dict[str, Any]:
    coords = room.coordinates
    return {
        "action": action,
        "room_json": room.model_dump_json(),
        "inventory_json": json.dumps(player.inventory),
        "health": player.health,
        "known_rooms": ", ".join(f"{r.id} ({r.name})" for r in known_rooms.values()),
        "x": coords.x if coords else 0,
        "y": coords.y if coords else 0,
    }
