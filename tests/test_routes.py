"""API tests: the FastAPI app driven through TestClient with a scripted LLM."""

from __future__ import annotations

import json
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from zork_agents.app import create_app
from zork_agents.config import update_config
from zork_agents.engine import TurnState
from zork_agents.llm import LLMError

START_ROOM = {
    "id": "start", "name": "Damp Cave", "description": "Water drips somewhere.",
    "exits": ["north"], "items": ["lantern"],
}
GM_REPLY = {
    "narrative": "You squeeze north into a cellar.",
    "newRoom": {"id": "cellar", "name": "Cellar", "description": "Cobwebs.", "exits": ["south"]},
    "movedToRoomId": "cellar",
    "playerUpdate": {"inventoryToAdd": ["cobweb"]},
}


class ScriptedLLM:
    """Same reply every time for a given stage."""

    def __init__(self) -> None:
        self.replies = {
            "room_generator": json.dumps(START_ROOM),
            "player": "go north",
            "game_master": json.dumps(GM_REPLY),
        }
        self.calls: list[str] = []

    async def __call__(self, stage: str, prompt: str) -> str:
        self.calls.append(stage)
        return self.replies[stage]


@pytest.fixture()
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture()
def client(tmp_path, llm) -> Generator[TestClient, None, None]:
    update_config(tmp_path, {"step_delay_ms": 0, "autoplay_interval_ms": 60000})
    app = create_app(tmp_path, llm=llm)
    with TestClient(app) as c:
        yield c


def test_health(client: TestClient) -> None:
    assert client.get("/api/health").json() == {"status": "ok"}


def test_state_after_startup(client: TestClient) -> None:
    state = client.get("/api/state").json()
    assert state["initialized"] is True
    assert state["current_room_name"] == "Damp Cave"
    assert [log["text"] for log in state["logs"]] == [
        "Initializing world...",
        "Water drips somewhere.",
    ]
    assert state["processing"] is False


def test_step_runs_one_turn(client: TestClient, llm: ScriptedLLM) -> None:
    resp = client.post("/api/step")
    assert resp.status_code == 200
    state = resp.json()
    assert state["turn_count"] == 1
    assert state["player"]["current_room_id"] == "cellar"
    assert state["player"]["inventory"] == ["cobweb"]
    assert {room["id"] for room in state["rooms"]} == {"start", "cellar"}
    assert [log["role"] for log in state["logs"]][-2:] == ["PLAYER", "GM"]
    assert llm.calls == ["room_generator", "player", "game_master"]


def test_step_while_busy_is_conflict(client: TestClient) -> None:
    engine = client.app.state.engine
    engine._state = TurnState.AWAITING_RESOLUTION
    try:
        resp = client.post("/api/step")
    finally:
        engine._state = TurnState.IDLE
    assert resp.status_code == 409


def test_rooms_and_logs(client: TestClient) -> None:
    client.post("/api/step")
    rooms = client.get("/api/rooms").json()
    cellar = next(room for room in rooms if room["id"] == "cellar")
    assert cellar["visited"] is True
    assert abs(cellar["coordinates"]["x"]) == 1
    logs = client.get("/api/logs").json()
    assert logs[-1]["text"] == "You squeeze north into a cellar."


def test_autoplay_toggle(client: TestClient) -> None:
    assert client.post("/api/autoplay").json() == {"auto_play": True}
    assert client.get("/api/state").json()["auto_play"] is True
    assert client.post("/api/autoplay").json() == {"auto_play": False}


def test_reset_starts_a_fresh_world(client: TestClient) -> None:
    client.post("/api/step")
    state = client.post("/api/reset").json()
    assert state["turn_count"] == 0
    assert [room["id"] for room in state["rooms"]] == ["start"]
    assert state["player"]["current_room_id"] == "start"
    assert len(state["logs"]) == 2


def test_export(client: TestClient) -> None:
    resp = client.get("/api/export")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert "INSERT INTO rooms VALUES ('start', 'Damp Cave'," in resp.text
    assert "INSERT INTO player VALUES (1, 100, '[]');" in resp.text


def test_settings_patch(client: TestClient) -> None:
    resp = client.patch("/api/settings", json={"step_delay_ms": 250})
    assert resp.json()["step_delay_ms"] == 250
    assert client.app.state.engine.pacer.delay == 0.25
    assert client.get("/api/settings").json()["step_delay_ms"] == 250


def test_settings_patch_applies_autoplay_interval(client: TestClient) -> None:
    resp = client.patch("/api/settings", json={"autoplay_interval_ms": 1500})
    assert resp.status_code == 200
    assert client.app.state.session.autoplay_interval == 1.5


def test_settings_patch_llm_group(client: TestClient) -> None:
    resp = client.patch("/api/settings", json={"llm": {"provider_format": "openai", "model": "mistral"}})
    llm = resp.json()["llm"]
    assert llm["provider_format"] == "openai"
    assert llm["model"] == "mistral"


@pytest.mark.parametrize("body", [
    {"step_delay_ms": "slow"},
    {"step_delay_ms": -1},
    {"autoplay_interval_ms": 0},
    {"llm": {"provider_format": "foo"}},
    {"llm": {"timeout": "never"}},
])
def test_settings_patch_rejects_bad_values(client: TestClient, body: dict) -> None:
    resp = client.patch("/api/settings", json=body)
    assert resp.status_code == 422
    assert client.get("/api/settings").json()["step_delay_ms"] == 0


def test_create_app_rejects_unknown_provider_format(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER_FORMAT", "foo")
    with pytest.raises(LLMError, match="Unknown provider_format 'foo'"):
        create_app(tmp_path)
