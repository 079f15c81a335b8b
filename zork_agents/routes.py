"""FastAPI endpoints under /api.

The control surface (step, auto-play toggle, reset) plus read-only views of
the world for a map, console or stats panel to poll.
"""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from zork_agents.config import get_config, update_config
from zork_agents.session import SessionController, SessionView
from zork_agents.store import WorldStore

router = APIRouter()


class LLMSettingsBody(BaseModel):
    provider_url: str | None = None
    api_key: str | None = None
    provider_format: Literal["koboldcpp", "openai"] | None = None
    model: str | None = None
    timeout: float | None = Field(default=None, gt=0)


class UpdateSettings(BaseModel):
    llm: LLMSettingsBody | None = None
    step_delay_ms: int | None = Field(default=None, ge=0)
    autoplay_interval_ms: int | None = Field(default=None, gt=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None


def get_session(request: Request) -> SessionController:
    return request.app.state.session


def get_store(request: Request) -> WorldStore:
    return request.app.state.store


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/state", response_model=SessionView)
async def get_state(session: SessionController = Depends(get_session)):
    """Rooms, player, transcript and session flags in one payload."""
    return session.view()


@router.get("/rooms")
async def list_rooms(store: WorldStore = Depends(get_store)):
    return store.list_rooms()


@router.get("/logs")
async def get_logs(store: WorldStore = Depends(get_store)):
    return store.get_logs()


@router.post("/step")
async def step(session: SessionController = Depends(get_session)):
    """Run exactly one turn."""
    if not await session.step():
        raise HTTPException(409, "A turn is already in progress")
    return session.view()


@router.post("/autoplay")
async def toggle_autoplay(session: SessionController = Depends(get_session)):
    """Flip auto-play; returns the new flag."""
    return {"auto_play": session.toggle_auto_play()}


@router.post("/reset")
async def reset(session: SessionController = Depends(get_session)):
    """Wipe the world and start over from a fresh start room."""
    await session.reset()
    return session.view()


@router.get("/export", response_class=PlainTextResponse)
async def export(store: WorldStore = Depends(get_store)):
    """SQL-like dump of the store, for display only."""
    return store.export_snapshot()


@router.get("/settings")
async def get_settings(request: Request):
    return get_config(request.app.state.data_dir)


@router.patch("/settings")
async def update_settings(body: UpdateSettings, request: Request):
    """Update stored settings (partial merge).

    Pacing delay and auto-play interval take effect at once. LLM connection
    and log level changes are read at the next start.
    """
    config = update_config(request.app.state.data_dir, body.model_dump(exclude_none=True))
    request.app.state.engine.pacer.delay = config["step_delay_ms"] / 1000
    request.app.state.session.autoplay_interval = config["autoplay_interval_ms"] / 1000
    return config
