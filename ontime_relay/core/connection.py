"""
core/connection.py — ontime WebSocket connection with fixed-interval reconnect.

One OntimeConnection owns one socket at a time:
  connect()     → status CONNECTING, close any previous socket, open ws://host:port/ws
  open          → cancel pending reconnect, status OK
  message       → dispatched on its "type" tag ("ontime" | "ontime-refetch")
  close         → status DISCONNECTED, schedule a reconnect while enabled
  disconnect()  → disable reconnect for good, cancel the timer, close the socket

The host side (status, variables, feedbacks, actions) is the injected HostSink.
The socket connector and HTTP session are injectable so tests can drive the
lifecycle without a real ontime server.
"""

from __future__ import annotations

import asyncio
import json
import re
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import aiohttp

from .enums import STATE_FEEDBACKS, InstanceStatus, VariableId
from .events import EventEntry, EventFetchError, fetch_events
from .sink import HostSink
from .timefmt import ms_to_time, to_readable_time

SocketConnector = Callable[[str], Awaitable[Any]]

DEFAULT_RECONNECT_INTERVAL = 1.0

_SCHEME = re.compile(r"^(http|https)://")


class OntimeConnectionError(Exception):
    pass


class MessageOutcome(str, Enum):
    STATE = "state"
    REFETCH = "refetch"
    IGNORED = "ignored"
    PARSE_ERROR = "parse_error"


def normalize_host(host: str) -> str:
    """Strip a leading http:// or https:// from a configured host."""
    return _SCHEME.sub("", host.strip())


def build_variables(state: dict) -> dict[str, Any]:
    """Flatten an ontime state payload into display variables."""
    timer = state["timer"]
    current = to_readable_time(timer.get("current"))
    clock = to_readable_time(timer.get("clock"))
    started = to_readable_time(timer.get("startedAt"))
    finish = to_readable_time(timer.get("expectedFinish"))
    titles = state.get("titles") or {}

    def message_text(key: str) -> str:
        return (state.get(key) or {}).get("text", "")

    return {
        VariableId.TIME.value: current.hms(),
        VariableId.TIME_HM.value: current.hm(),
        VariableId.TIME_H.value: current.hours,
        VariableId.TIME_M.value: current.minutes,
        VariableId.TIME_S.value: current.seconds,
        VariableId.CLOCK.value: clock.hms(),
        VariableId.TIMER_START.value: started.hms(),
        VariableId.TIMER_FINISH.value: finish.hms(),
        VariableId.TIMER_DELAY.value: ms_to_time(timer.get("addedTime")),

        VariableId.PLAY_STATE.value: state.get("playback"),
        VariableId.ON_AIR.value: state.get("onAir"),

        VariableId.TITLE_NOW.value: titles.get("titleNow", ""),
        VariableId.SUBTITLE_NOW.value: titles.get("subtitleNow", ""),
        VariableId.SPEAKER_NOW.value: titles.get("presenterNow", ""),
        VariableId.NOTE_NOW.value: titles.get("noteNow", ""),
        VariableId.TITLE_NEXT.value: titles.get("titleNext", ""),
        VariableId.SUBTITLE_NEXT.value: titles.get("subtitleNext", ""),
        VariableId.SPEAKER_NEXT.value: titles.get("presenterNext", ""),
        VariableId.NOTE_NEXT.value: titles.get("noteNext", ""),

        VariableId.SPEAKER_MESSAGE.value: message_text("timerMessage"),
        VariableId.PUBLIC_MESSAGE.value: message_text("publicMessage"),
        VariableId.LOWER_MESSAGE.value: message_text("lowerMessage"),
    }


class OntimeConnection:
    def __init__(
        self,
        sink: HostSink,
        host: str,
        port: int | str,
        reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL,
        connector: Optional[SocketConnector] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.sink = sink
        self.host = host
        self.port = port
        self.reconnect_interval = reconnect_interval

        self._connector = connector
        self._session = session
        self._owns_session = session is None

        self._ws: Optional[Any] = None
        self._generation = 0
        self._should_reconnect = True
        self._receive_task: Optional[asyncio.Task] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._refetch_task: Optional[asyncio.Task] = None
        self._pending: set[asyncio.Task] = set()

        self.state: dict = {}
        self.events: list[EventEntry] = []

    # ── Addresses ─────────────────────────────────────────────────────

    @property
    def ws_url(self) -> str:
        return f"ws://{normalize_host(self.host)}:{self.port}/ws"

    @property
    def http_url(self) -> str:
        return f"http://{normalize_host(self.host)}:{self.port}"

    # ── State ─────────────────────────────────────────────────────────

    def is_connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    @property
    def should_reconnect(self) -> bool:
        return self._should_reconnect

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def refetch_task(self) -> Optional[asyncio.Task]:
        return self._refetch_task

    @property
    def reconnect_task(self) -> Optional[asyncio.Task]:
        return self._reconnect_task

    # ── Connection ────────────────────────────────────────────────────

    async def connect(self) -> bool:
        if not self.host or not self.port:
            self.sink.update_status(InstanceStatus.BAD_CONFIG, "no host and/or port defined")
            return False

        self.sink.update_status(InstanceStatus.CONNECTING)
        self._generation += 1
        generation = self._generation

        if self._ws is not None:
            previous, self._ws = self._ws, None
            await previous.close()

        url = self.ws_url
        try:
            ws = await self._open(url)
        except (aiohttp.ClientError, OSError, TimeoutError) as e:
            if generation == self._generation:
                self._on_error(e)
                self._on_close(None, 1006)
            return False

        # A newer connect() or a disconnect() ran while this one was opening
        if generation != self._generation:
            await ws.close()
            return False

        self._ws = ws
        self._on_open()
        self._receive_task = asyncio.get_running_loop().create_task(self._receive_loop(ws))
        return True

    async def disconnect(self) -> None:
        self._should_reconnect = False
        self._generation += 1
        self._cancel_reconnect()
        if self._ws is not None:
            await self._ws.close()

    async def close(self) -> None:
        """Disconnect for good and release the HTTP session this connection created."""
        await self.disconnect()
        if self._receive_task is not None:
            await asyncio.gather(self._receive_task, return_exceptions=True)
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _open(self, url: str) -> Any:
        if self._connector is not None:
            return await self._connector(url)
        return await self._get_session().ws_connect(url)

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        # The loop only keeps weak references to tasks
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _receive_loop(self, ws: Any) -> None:
        try:
            async for msg in ws:
                if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    self.handle_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self._on_error(ws.exception())
        finally:
            self._on_close(ws, ws.close_code)

    # ── Socket events ─────────────────────────────────────────────────

    def _on_open(self) -> None:
        self._cancel_reconnect()
        self.sink.update_status(InstanceStatus.OK)
        self.sink.log("debug", "Socket connected")

    def _on_close(self, ws: Optional[Any], code: Optional[int]) -> None:
        # Sockets replaced by a newer connect() close silently
        if ws is not self._ws:
            return
        self.sink.log("debug", f"Connection closed with code {code}")
        self.sink.update_status(InstanceStatus.DISCONNECTED, f"Connection closed with code {code}")
        if self._should_reconnect:
            self._schedule_reconnect()

    def _on_error(self, error: Any) -> None:
        self.sink.log("debug", f"WebSocket error: {error}")

    # ── Reconnect ─────────────────────────────────────────────────────

    def _schedule_reconnect(self) -> None:
        self._cancel_reconnect()
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self.reconnect_interval, self._on_reconnect_timer)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _on_reconnect_timer(self) -> None:
        self._reconnect_handle = None
        if not self._should_reconnect:
            return
        if self._ws is None or self._ws.closed:
            self._reconnect_task = self._spawn(self.connect())

    # ── Inbound messages ──────────────────────────────────────────────

    def handle_message(self, raw: str | bytes) -> MessageOutcome:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            return MessageOutcome.PARSE_ERROR

        if not isinstance(data, dict):
            return MessageOutcome.IGNORED

        msg_type = data.get("type")
        if msg_type == "ontime":
            return self._handle_state(data.get("payload"))
        if msg_type == "ontime-refetch":
            self._start_refetch()
            return MessageOutcome.REFETCH
        return MessageOutcome.IGNORED

    def _handle_state(self, payload: Any) -> MessageOutcome:
        try:
            state = dict(payload)
            state["isNegative"] = (state["timer"].get("current") or 0) < 0
            variables = build_variables(state)
        except (KeyError, TypeError, ValueError, AttributeError):
            return MessageOutcome.PARSE_ERROR

        self.state = state
        self.sink.set_variable_values(variables)
        self.sink.check_feedbacks(*STATE_FEEDBACKS)
        return MessageOutcome.STATE

    def _start_refetch(self) -> None:
        self.sink.log("debug", "refetching events")
        self.events = []
        self._refetch_task = self._spawn(self._refetch())

    async def _refetch(self) -> None:
        if await self.init_events():
            self.sink.init_actions(list(self.events))

    # ── Event directory ───────────────────────────────────────────────

    async def init_events(self) -> bool:
        self.sink.log("debug", "fetching events from ontime")
        self.events = []
        try:
            events = await fetch_events(self._get_session(), self.http_url)
        except EventFetchError as e:
            self.sink.log("error", f"failed to fetch events from ontime: {e}")
            return False
        self.sink.log("debug", f"fetched {len(events)} events")
        self.events = events
        return True

    # ── Outbound ──────────────────────────────────────────────────────

    async def socket_send(self, message: str) -> bool:
        """Send a raw text frame. Dropped without error unless the socket is open."""
        if self._ws is None or self._ws.closed:
            return False
        try:
            await self._ws.send_str(message)
        except (ConnectionError, aiohttp.ClientError) as e:
            self.sink.log("debug", f"WebSocket send failed: {e}")
            return False
        return True

    async def socket_send_json(self, type: str, payload: Any = None) -> bool:
        message: dict[str, Any] = {"type": type}
        if payload is not None:
            message["payload"] = payload
        return await self.socket_send(json.dumps(message))
