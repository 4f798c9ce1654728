"""
Server Tests — client message dispatch and frame serialization (no network).
"""

import sys
import os
import json
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import physics
import server
from controller import BilliardsController
from render import CommandSurface


@pytest.fixture(autouse=True)
def fresh_server(monkeypatch):
    monkeypatch.setattr(server, "ctrl", BilliardsController())
    monkeypatch.setitem(server.pointer_held, "down", False)
    monkeypatch.setattr(physics, "FRICTION", physics.FRICTION)
    monkeypatch.setattr(physics, "REST_EPSILON", physics.REST_EPSILON)
    return server.ctrl


class TestPointerMessages:

    def test_drag_and_release_shoots(self, fresh_server):
        ctrl = fresh_server
        server._handle_message({"cmd": "pointer_down", "x": 100, "y": 225})
        ctrl.step()
        server._handle_message({"cmd": "pointer_move", "x": 50, "y": 225})
        ctrl.step()
        assert ctrl.shot_power == pytest.approx(150.0)

        server._handle_message({"cmd": "pointer_up"})
        ctrl.step()
        assert ctrl.cue_ball.velocity[0] > 0
        assert not server.pointer_held["down"]

    def test_move_without_press_is_dropped(self, fresh_server):
        server._handle_message({"cmd": "pointer_move", "x": 50, "y": 225})
        assert fresh_server.pending_input == []

    def test_new_rack(self, fresh_server):
        server._handle_message({"cmd": "new_rack"})
        assert {"type": "rack_reset"} in fresh_server.pending_events


class TestReplies:

    def test_get_state(self, fresh_server):
        reply = server._handle_message({"cmd": "get_state"})
        assert reply["type"] == "state_json"
        assert "cue" in json.loads(reply["data"])["balls"]

    def test_get_params(self):
        reply = server._handle_message({"cmd": "get_params"})
        assert [p["attr"] for p in reply["data"]] == ["FRICTION", "REST_EPSILON"]

    def test_adjust_param_is_clamped(self):
        reply = server._handle_message({"cmd": "adjust_param", "index": 0, "direction": 1})
        assert reply["value"] == pytest.approx(0.991)
        for _ in range(50):
            server._handle_message({"cmd": "adjust_param", "index": 0, "direction": 1})
        assert physics.FRICTION == 1.0

    def test_adjust_param_fine_step(self):
        reply = server._handle_message(
            {"cmd": "adjust_param", "index": 1, "direction": -1, "fine": True})
        assert reply["value"] == pytest.approx(0.049)

    def test_adjust_param_bad_index(self):
        assert server._handle_message({"cmd": "adjust_param", "index": 9, "direction": 1}) is None

    def test_reset_params(self):
        physics.FRICTION = 0.95
        reply = server._handle_message({"cmd": "reset_params"})
        assert physics.FRICTION == server.PARAM_DEFAULTS["FRICTION"]
        assert reply["type"] == "params"

    def test_unknown_command(self):
        assert server._handle_message({"cmd": "dance"}) is None

    @pytest.mark.parametrize("msg", [
        5, [1], "pointer_down", None,
        {"cmd": "pointer_down", "x": "left", "y": 10},
        {"cmd": "pointer_down", "x": None, "y": 10},
        {"cmd": "adjust_param", "index": "first", "direction": 1},
        {"cmd": "execute", "text": 5},
    ])
    def test_malformed_messages_are_ignored(self, fresh_server, msg):
        assert server._handle_message(msg) is None
        assert fresh_server.pending_input == []
        assert not server.pointer_held["down"]
        assert physics.FRICTION == server.PARAM_DEFAULTS["FRICTION"]


class TestFrameMessage:

    def test_frame_contents_and_event_drain(self, fresh_server):
        fresh_server.new_rack()
        frame = json.loads(server._build_frame_message(CommandSurface()))
        assert frame["type"] == "frame"
        assert frame["draw"][0]["op"] == "clear"
        assert {"type": "rack_reset"} in frame["events"]
        assert frame["mode"] == "idle"
        assert "aim" not in frame
        assert fresh_server.pending_events == []

    def test_notify_reaches_client_after_status_changes(self, fresh_server):
        fresh_server.set_balls({"cue": {"pos": [3.0, 3.0], "vel": [-2.0, -2.0]}})
        fresh_server.step()
        for _ in range(5):
            fresh_server.step()
        assert fresh_server.status_msg.startswith("Stopped")
        frame = json.loads(server._build_frame_message(CommandSurface()))
        assert {"type": "notify", "message": fresh_server.SCRATCH_MSG} in frame["events"]

    def test_client_page_shows_notify_events(self):
        page = (server.STATIC_DIR / "index.html").read_text(encoding="utf-8")
        assert 'e.type === "notify"' in page
        assert 'id="result"' in page

    def test_frame_reports_aim(self, fresh_server):
        fresh_server.pointer_down(100.0, 225.0)
        fresh_server.step()
        frame = json.loads(server._build_frame_message(CommandSurface()))
        assert frame["aim"]["power"] == pytest.approx(100.0)
        assert any(c["op"] == "line" for c in frame["draw"])
