"""
tests/ — Basic test coverage for ontime-relay modules.
Run with: pytest tests/ -v
"""

import asyncio
import json

import pytest

from conftest import make_state, wait_for


# ─── Time formatting ──────────────────────────────────────────────────────────

from ontime_relay.core.timefmt import TimeParts, ms_to_time, to_readable_time


def test_readable_time_parts():
    parts = to_readable_time(3_723_000)
    assert parts == TimeParts("01", "02", "03")
    assert parts.hms() == "01:02:03"
    assert parts.hm() == "01:02"


def test_readable_time_edges():
    assert to_readable_time(None) == TimeParts("00", "00", "00")
    assert to_readable_time(1_999).seconds == "01"            # truncated, not rounded
    assert to_readable_time(-61_000) == TimeParts("-00", "01", "01")
    assert to_readable_time(90_000_000).hours == "25"          # no wrap at 24h


def test_ms_to_time():
    assert ms_to_time(300_000) == "00:05:00"
    assert ms_to_time(-90_000) == "-00:01:30"
    assert ms_to_time(0) == "00:00:00"
    assert ms_to_time(None) == "00:00:00"


# ─── Feedbacks ────────────────────────────────────────────────────────────────

from ontime_relay.core.enums import FeedbackId
from ontime_relay.core.feedbacks import evaluate_feedback


@pytest.mark.parametrize("playback,active", [
    ("play", FeedbackId.COLOR_RUNNING),
    ("pause", FeedbackId.COLOR_PAUSED),
    ("stop", FeedbackId.COLOR_STOPPED),
    ("roll", FeedbackId.COLOR_ROLL),
])
def test_playback_feedbacks(playback, active):
    state = make_state(playback=playback)
    colors = [FeedbackId.COLOR_RUNNING, FeedbackId.COLOR_PAUSED, FeedbackId.COLOR_STOPPED, FeedbackId.COLOR_ROLL]
    assert [evaluate_feedback(f, state) for f in colors] == [f == active for f in colors]


def test_message_and_flag_feedbacks():
    state = make_state(isNegative=True, onAir=False)
    assert evaluate_feedback(FeedbackId.COLOR_NEGATIVE, state) is True
    assert evaluate_feedback(FeedbackId.ON_AIR, state) is False
    assert evaluate_feedback(FeedbackId.SPEAKER_MESSAGE_VISIBLE, state) is True
    assert evaluate_feedback(FeedbackId.PUBLIC_MESSAGE_VISIBLE, state) is False
    assert evaluate_feedback("no_such_feedback", state) is False
    assert evaluate_feedback(FeedbackId.ON_AIR, {}) is False


# ─── Actions ──────────────────────────────────────────────────────────────────

from ontime_relay.core import ActionError, EventEntry, build_actions


def test_action_catalogue_uses_event_directory():
    actions = build_actions([EventEntry("a1", "Intro"), EventEntry("b2", "Talk")])
    option = actions["start_selected"].option
    assert option.choices == [{"id": "a1", "label": "Intro"}, {"id": "b2", "label": "Talk"}]
    assert option.default == "a1"
    assert actions["start_selected"].build_payload("b2") == "b2"
    with pytest.raises(ActionError, match="Unknown choice"):
        actions["start_selected"].build_payload("zz")


def test_action_payload_coercion():
    actions = build_actions([])
    assert actions["pause"].build_payload("ignored") is None
    assert actions["add_time"].build_payload("5") == 5
    assert actions["add_time"].build_payload(-2.5) == -2.5
    assert actions["set_on_air"].build_payload("0") is False
    assert actions["set_on_air"].build_payload(None) is True
    assert actions["set_public_message"].build_payload("Hello") == "Hello"
    with pytest.raises(ActionError, match="expects a number"):
        actions["add_time"].build_payload("soon")
    with pytest.raises(ActionError, match="requires a value"):
        actions["start_selected"].build_payload(None)


# ─── Relay instance ───────────────────────────────────────────────────────────

from ontime_relay.core import OntimeConnection, OntimeConnectionError, RelayInstance


@pytest.mark.asyncio
async def test_instance_collects_variables_and_feedbacks(sockets):
    instance = RelayInstance()
    conn = OntimeConnection(instance, "localhost", 4001, connector=sockets)
    instance.attach(conn)

    conn.handle_message(json.dumps({"type": "ontime", "payload": make_state(current=-1_000)}))

    assert instance.variables["time"] == "-00:00:01"
    assert instance.variables["title_now"] == "Keynote"
    assert instance.feedbacks["color_running"] is True
    assert instance.feedbacks["color_negative"] is True
    assert instance.feedbacks["public_message_visible"] is False


@pytest.mark.asyncio
async def test_instance_runs_actions_over_socket(sockets):
    instance = RelayInstance()
    conn = OntimeConnection(instance, "localhost", 4001, connector=sockets)
    instance.attach(conn)
    await conn.connect()
    instance.init_actions([EventEntry("a1", "Intro")])

    result = await instance.run_action("start_selected", "a1")
    assert result == {"action": "start_selected", "type": "start-id", "payload": "a1", "sent": True}
    await instance.run_action("add_time", 5)

    sent = [json.loads(s) for s in sockets.sockets[0].sent]
    assert sent == [{"type": "start-id", "payload": "a1"}, {"type": "delay", "payload": 5}]
    with pytest.raises(ActionError, match="not found"):
        await instance.run_action("explode")
    await conn.close()


@pytest.mark.asyncio
async def test_instance_without_connection():
    instance = RelayInstance()
    assert instance.is_connected() is False
    assert instance.get_events() == []
    with pytest.raises(OntimeConnectionError):
        await instance.run_action("pause")


@pytest.mark.asyncio
async def test_instance_notifies_listeners(sockets):
    instance = RelayInstance()
    received = []

    async def listener(message):
        received.append(message)

    instance.add_listener(listener)
    conn = OntimeConnection(instance, "localhost", 4001, connector=sockets)
    instance.attach(conn)
    await conn.connect()

    await wait_for(lambda: any(m["event"] == "status" and m["data"]["status"] == "ok" for m in received))
    conn.handle_message(json.dumps({"type": "ontime", "payload": make_state()}))
    await asyncio.sleep(0)
    events = [m["event"] for m in received]
    assert "variables" in events and "feedbacks" in events
    await conn.close()


@pytest.mark.asyncio
async def test_failing_listener_is_logged_and_released(caplog):
    instance = RelayInstance()
    received = []

    async def broken(message):
        raise RuntimeError("listener down")

    async def listener(message):
        received.append(message["event"])

    instance.add_listener(broken)
    instance.add_listener(listener)
    instance.set_variable_values({"time": "00:00:01"})
    assert len(instance._pending) == 2

    await wait_for(lambda: not instance._pending)
    assert received == ["variables"]
    assert "Listener error: listener down" in caplog.text


# ─── Connection registry ──────────────────────────────────────────────────────

from ontime_relay.core import dispose_connection, get_connection, init_connection


@pytest.mark.asyncio
async def test_registry_replaces_connection():
    instance = RelayInstance()
    first = await init_connection(instance, "localhost", 4001)
    second = await init_connection(instance, "localhost", 4002)

    assert get_connection() is second
    assert first.should_reconnect is False
    assert second.should_reconnect is True
    await dispose_connection()
    with pytest.raises(OntimeConnectionError):
        get_connection()


# ─── Config ───────────────────────────────────────────────────────────────────

from ontime_relay.config import Settings


def test_settings_defaults():
    s = Settings()
    assert s.ontime.port == 4001
    assert s.ontime.reconnect_interval == 1.0
    assert s.api.port == 8080
    assert s.osc.listen_port == 9000


def test_settings_yaml_load(tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text(
        "ontime:\n  host: http://192.168.1.100\n  port: 4002\n  reconnect_interval: 2.5\n"
        "api:\n  port: 9090\n"
    )
    s = Settings.load(config)
    assert s.ontime.host == "http://192.168.1.100"
    assert s.ontime.port == 4002
    assert s.ontime.reconnect_interval == 2.5
    assert s.api.port == 9090


def test_settings_to_yaml(tmp_path):
    out = tmp_path / "out.yaml"
    Settings.load(tmp_path / "missing.yaml").to_yaml(out)
    assert Settings.load(out).ontime.port == 4001


def test_settings_env_overrides_yaml(tmp_path, monkeypatch):
    config = tmp_path / "config.yaml"
    config.write_text("ontime:\n  host: yaml-host\n  port: 4002\napi:\n  port: 9090\n")
    monkeypatch.setenv("ONTIME_HOST", "env-host")
    monkeypatch.setenv("API_PORT", "7070")

    s = Settings.load(config)
    assert s.ontime.host == "env-host"
    assert s.ontime.port == 4002       # YAML still beats the default
    assert s.api.port == 7070
