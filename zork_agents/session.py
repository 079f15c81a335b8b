"""Session controller: bootstrap, manual steps and the auto-play loop.

The controller owns the auto-play flag and the scheduling of turns; the
turn engine owns mutual exclusion. Turns run as their own tasks so that
switching auto-play off stops future turns without cutting short the one
already in flight. ``close()`` tears everything down, including a pending
pacing delay.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from pydantic import BaseModel

from zork_agents.agents import DEFAULT_START_ROOM, RoomGenerator
from zork_agents.engine import TurnEngine
from zork_agents.models import Coordinates, LogEntry, PlayerState, Room
from zork_agents.store import WorldStore

logger = logging.getLogger(__name__)


class SessionView(BaseModel):
    """Read-only projection handed to presentation code."""

    rooms: list[Room]
    player: PlayerState
    logs: list[LogEntry]
    tick: int
    turn_count: int
    auto_play: bool
    processing: bool
    initialized: bool
    current_room_name: str


Listener = Callable[[SessionView], None]


class SessionController:
    def __init__(
        self,
        store: WorldStore,
        engine: TurnEngine,
        room_generator: RoomGenerator,
        *,
        autoplay_interval: float = 4.0,
    ) -> None:
        self._store = store
        self._engine = engine
        self._room_generator = room_generator
        self._interval = autoplay_interval
        self._auto_play = False
        self._initialized = False
        self._tick = 0
        self._loop_task: asyncio.Task | None = None
        self._turns: set[asyncio.Task] = set()
        self._listeners: list[Listener] = []
        engine.on_change = self.refresh

    @property
    def auto_play(self) -> bool:
        return self._auto_play

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def tick(self) -> int:
        return self._tick

    @property
    def autoplay_interval(self) -> float:
        return self._interval

    @autoplay_interval.setter
    def autoplay_interval(self, seconds: float) -> None:
        self._interval = seconds
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = asyncio.create_task(self._auto_play_loop())

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def refresh(self) -> None:
        self._tick += 1
        if self._listeners:
            view = self.view()
            for listener in self._listeners:
                listener(view)

    def view(self) -> SessionView:
        player = self._store.get_player()
        current = self._store.get_room(player.current_room_id)
        return SessionView(
            rooms=self._store.list_rooms(),
            player=player,
            logs=self._store.get_logs(),
            tick=self._tick,
            turn_count=self._store.get_settings().turn_count,
            auto_play=self._auto_play,
            processing=self._engine.busy,
            initialized=self._initialized,
            current_room_name=current.name if current else "Unknown",
        )

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def bootstrap(self) -> None:
        """Create the opening room on an empty transcript, otherwise resume."""
        if self._store.get_logs():
            logger.info("Resuming saved world (%d rooms)", len(self._store.list_rooms()))
        else:
            logger.info("Fresh world, generating start room")
            self._store.append_log("SYSTEM", "Initializing world...")
            self.refresh()
            try:
                room = await self._room_generator()
            except Exception:
                logger.exception("World initialization failed, using the default start room")
                self._store.append_log("SYSTEM", "Error initializing world.")
                room = DEFAULT_START_ROOM.model_copy(deep=True)
            if room.coordinates is None:
                room = room.model_copy(update={"coordinates": Coordinates(x=0, y=0)})
            self._store.upsert_room(room)
            self._store.update_player({"current_room_id": room.id})
            self._store.append_log("GM", room.description)

        self._store.update_settings({"game_active": True, "auto_play": False})
        self._initialized = True
        self.refresh()

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    def _spawn_turn(self) -> asyncio.Task:
        task = asyncio.create_task(self._engine.execute_turn())
        self._turns.add(task)
        task.add_done_callback(self._turns.discard)
        return task

    async def step(self) -> bool:
        """Run exactly one turn.

        Returns False if the turn could not start, or if ``reset``/``close``
        cancelled it before it finished.
        """
        if not self._initialized or self._engine.busy:
            return False
        (outcome,) = await asyncio.gather(self._spawn_turn(), return_exceptions=True)
        if isinstance(outcome, asyncio.CancelledError):
            logger.info("Step cancelled before the turn finished")
            return False
        return outcome is True

    def toggle_auto_play(self) -> bool:
        self.set_auto_play(not self._auto_play)
        return self._auto_play

    def set_auto_play(self, enabled: bool) -> None:
        self._auto_play = enabled
        if enabled and self._loop_task is None:
            self._loop_task = asyncio.create_task(self._auto_play_loop())
        elif not enabled and self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None
        self._store.update_settings({"auto_play": enabled})
        logger.info("Auto-play %s", "on" if enabled else "off")
        self.refresh()

    async def _auto_play_loop(self) -> None:
        while self._auto_play:
            await asyncio.sleep(self._interval)
            if self._initialized and not self._engine.busy:
                self._spawn_turn()

    async def reset(self) -> None:
        """Stop everything, wipe the world and bootstrap again."""
        self.set_auto_play(False)
        await self._cancel_turns()
        self._store.reset()
        self._initialized = False
        self.refresh()
        await self.bootstrap()

    async def close(self) -> None:
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None
        self._auto_play = False
        await self._cancel_turns()

    async def _cancel_turns(self) -> None:
        self._engine.pacer.cancel()
        pending = list(self._turns)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
