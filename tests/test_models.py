"""Tests for zork_agents.models."""

import pytest
from pydantic import ValidationError

from zork_agents.models import GameDatabase, LogEntry, PlayerState, PlayerUpdate, Resolution, Room


class TestRoom:
    def test_defaults(self) -> None:
        r = Room(id="hall")
        assert r.exits == []
        assert r.items == []
        assert r.visited is False
        assert r.coordinates is None

    def test_coordinates_parsed(self) -> None:
        r = Room.model_validate({"id": "hall", "coordinates": {"x": 2, "y": -1}})
        assert (r.coordinates.x, r.coordinates.y) == (2, -1)


class TestPlayerState:
    def test_defaults(self) -> None:
        p = PlayerState()
        assert p.current_room_id == "start"
        assert p.inventory == []
        assert p.health == 100
        assert p.status == "Healthy"


class TestLogEntry:
    def test_invalid_role_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LogEntry(id=1, role="NARRATOR", text="x", timestamp=1)

    def test_all_roles_accepted(self) -> None:
        for role in ("GM", "PLAYER", "SYSTEM"):
            assert LogEntry(id=1, role=role, text="x", timestamp=1).role == role


class TestGameDatabase:
    def test_initial_state_is_empty_world(self) -> None:
        db = GameDatabase()
        assert db.rooms == {}
        assert db.logs == []
        assert db.player == PlayerState()
        assert db.settings.turn_count == 0
        assert db.settings.auto_play is False


class TestResolution:
    def test_narrative_only(self) -> None:
        r = Resolution.model_validate({"narrative": "Nothing happens."})
        assert r.new_room is None
        assert r.moved_to_room_id is None
        assert r.player_update is None

    def test_narrative_required(self) -> None:
        with pytest.raises(ValidationError):
            Resolution.model_validate({"movedToRoomId": "hall"})

    def test_camel_case_wire_format(self) -> None:
        r = Resolution.model_validate({
            "narrative": "You walk north.",
            "newRoom": {"id": "forest_path", "name": "Forest Path", "description": "Trees."},
            "movedToRoomId": "forest_path",
            "playerUpdate": {"health": 90, "inventoryToAdd": ["leaf"], "inventoryToRemove": []},
        })
        assert r.new_room.id == "forest_path"
        assert r.moved_to_room_id == "forest_path"
        assert r.player_update.health == 90
        assert r.player_update.inventory_to_add == ["leaf"]

    def test_snake_case_accepted(self) -> None:
        r = Resolution(narrative="x", moved_to_room_id="hall")
        assert r.moved_to_room_id == "hall"

    def test_null_optionals_are_absent(self) -> None:
        r = Resolution.model_validate({
            "narrative": "x", "newRoom": None, "movedToRoomId": None, "playerUpdate": None,
        })
        assert r.new_room is None and r.moved_to_room_id is None and r.player_update is None

    def test_malformed_new_room_dropped(self) -> None:
        assert Resolution.model_validate({"narrative": "x", "newRoom": "a cave"}).new_room is None
        assert Resolution.model_validate({"narrative": "x", "newRoom": {"name": "No id"}}).new_room is None
        bad_coords = {"id": "cave", "coordinates": {"x": "far"}}
        assert Resolution.model_validate({"narrative": "x", "newRoom": bad_coords}).new_room is None

    def test_blank_target_dropped(self) -> None:
        assert Resolution.model_validate({"narrative": "x", "movedToRoomId": "  "}).moved_to_room_id is None
        assert Resolution.model_validate({"narrative": "x", "movedToRoomId": 7}).moved_to_room_id is None

    def test_malformed_player_update_dropped(self) -> None:
        r = Resolution.model_validate({"narrative": "x", "playerUpdate": ["health", 5]})
        assert r.player_update is None


class TestPlayerUpdate:
    def test_health_coercion(self) -> None:
        assert PlayerUpdate.model_validate({"health": 80.0}).health == 80
        assert PlayerUpdate.model_validate({"health": "75"}).health == 75
        assert PlayerUpdate.model_validate({"health": 0}).health == 0

    def test_bad_health_is_absent(self) -> None:
        assert PlayerUpdate.model_validate({"health": "lots"}).health is None
        assert PlayerUpdate.model_validate({"health": True}).health is None
        assert PlayerUpdate.model_validate({"health": 12.5}).health is None

    def test_inventory_lists_filtered(self) -> None:
        u = PlayerUpdate.model_validate({"inventoryToAdd": ["lamp", 3, None], "inventoryToRemove": "lamp"})
        assert u.inventory_to_add == ["lamp"]
        assert u.inventory_to_remove == []
