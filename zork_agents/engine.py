"""Turn engine: runs one player/game-master exchange end-to-end.

Turn flow:
  1. Look up the player's room. A missing room aborts the turn with a
     SYSTEM entry; neither agent is contacted.
  2. Ask the player agent for an action (room, exits, items, inventory and
     the last few transcript lines). Log it as a PLAYER entry.
  3. Pause for the pacing delay (cancellable).
  4. Ask the game master to resolve the action.
  5. Apply the resolution, each part skipped when absent:
       a. narrative          → GM entry
       b. new room           → inserted if the id is unseen; missing
                               coordinates come from the placement policy
       c. moved-to room id   → player's current room (no existence check)
       d. player update      → inventory add-then-remove, health override

Only one turn is in flight at a time. A second ``execute_turn`` while the
first is running is ignored. Any exception from the agents or from applying
the resolution aborts the turn with a single SYSTEM entry; whatever was
written before the failing step stays written.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from enum import Enum

from zork_agents.agents import GameMaster, PlayerAgent
from zork_agents.models import Coordinates, PlayerState, Resolution, Room
from zork_agents.store import WorldStore

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 5
TURN_FAILED_MESSAGE = "Agents encountered an error."


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_PLAYER_ACTION = "awaiting_player_action"
    AWAITING_RESOLUTION = "awaiting_resolution"
    APPLYING = "applying"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Placement policy for rooms the game master left without coordinates
# ---------------------------------------------------------------------------

PlacementPolicy = Callable[[Coordinates, random.Random], Coordinates]


def jitter_placement(origin: Coordinates, rng: random.Random) -> Coordinates:
    """Place a room diagonally next to ``origin``, ±1 on each axis at random.

    Best-effort only: nothing here knows which exit was taken, so two rooms
    can land on the same cell or away from the direction travelled.
    """
    return Coordinates(
        x=origin.x + rng.choice((1, -1)),
        y=origin.y + rng.choice((1, -1)),
    )


# ---------------------------------------------------------------------------
# Pacing
# ---------------------------------------------------------------------------

class Pacer:
    """The dramatic pause between the player's move and the GM's answer."""

    def __init__(self, delay: float) -> None:
        self.delay = delay
        self._pending: asyncio.Future | None = None

    async def wait(self) -> None:
        if self.delay <= 0:
            return
        self._pending = asyncio.ensure_future(asyncio.sleep(self.delay))
        try:
            await self._pending
        finally:
            self._pending = None

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class TurnEngine:
    def __init__(
        self,
        store: WorldStore,
        player_agent: PlayerAgent,
        game_master: GameMaster,
        *,
        step_delay: float = 0.8,
        placement: PlacementPolicy = jitter_placement,
        rng: random.Random | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._store = store
        self._player_agent = player_agent
        self._game_master = game_master
        self._placement = placement
        self._rng = rng or random.Random()
        self.pacer = Pacer(step_delay)
        self.on_change = on_change
        self._state = TurnState.IDLE

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state is not TurnState.IDLE

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    def _enter(self, state: TurnState) -> None:
        logger.debug("turn state %s -> %s", self._state.value, state.value)
        self._state = state

    async def execute_turn(self) -> bool:
        """Run one turn. Returns False if a turn was already in flight."""
        if self.busy:
            logger.debug("Turn already in flight, ignoring request")
            return False

        self._enter(TurnState.AWAITING_PLAYER_ACTION)
        try:
            await self._run_turn()
        except Exception:
            self._enter(TurnState.FAILED)
            logger.exception("Turn aborted")
            self._store.append_log("SYSTEM", TURN_FAILED_MESSAGE)
            self._changed()
        finally:
            self._enter(TurnState.IDLE)
        return True

    async def _run_turn(self) -> None:
        player = self._store.get_player()
        room = self._store.get_room(player.current_room_id)
        if room is None:
            logger.warning("Player references missing room %r", player.current_room_id)
            self._store.append_log(
                "SYSTEM",
                f"CRITICAL ERROR: Player in void (room '{player.current_room_id}' does not exist).",
            )
            self._changed()
            return

        settings = self._store.get_settings()
        self._store.update_settings({"turn_count": settings.turn_count + 1})

        # 1. Player agent
        history = [f"{e.role}: {e.text}" for e in self._store.get_logs()[-HISTORY_WINDOW:]]
        action = await self._player_agent(room, history, list(player.inventory))
        self._store.append_log("PLAYER", f"> {action}")
        self._changed()

        # 2. Pacing, then the game master
        self._enter(TurnState.AWAITING_RESOLUTION)
        await self.pacer.wait()
        known_rooms = {r.id: r for r in self._store.list_rooms()}
        player = self._store.get_player()
        resolution = await self._game_master(action, room, known_rooms, player)
        if not isinstance(resolution, Resolution):
            resolution = Resolution.model_validate(resolution)

        # 3. Apply
        self._enter(TurnState.APPLYING)
        self.apply_resolution(resolution, room, player)
        self._changed()

    def apply_resolution(
        self, resolution: Resolution, current_room: Room, player: PlayerState
    ) -> None:
        """Write a resolution into the store. ``player`` is the pre-turn snapshot."""
        self._store.append_log("GM", resolution.narrative)

        new_room = resolution.new_room
        if new_room is not None:
            if self._store.get_room(new_room.id) is not None:
                logger.debug("newRoom %r already exists, keeping stored copy", new_room.id)
            else:
                if new_room.coordinates is None:
                    origin = current_room.coordinates or Coordinates(x=0, y=0)
                    new_room = new_room.model_copy(
                        update={"coordinates": self._placement(origin, self._rng)}
                    )
                self._store.upsert_room(new_room)

        target = resolution.moved_to_room_id
        if target is not None:
            self._store.update_player({"current_room_id": target})
            arrived = self._store.get_room(target)
            if arrived is None:
                logger.warning("Player moved to unknown room %r", target)
            elif not arrived.visited:
                self._store.upsert_room(arrived.model_copy(update={"visited": True}))

        update = resolution.player_update
        if update is not None:
            removed = set(update.inventory_to_remove)
            inventory = [
                item
                for item in [*player.inventory, *update.inventory_to_add]
                if item not in removed
            ]
            fields: dict[str, object] = {"inventory": inventory}
            if update.health is not None:
                fields["health"] = update.health
            self._store.update_player(fields)
