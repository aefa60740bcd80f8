"""
Shared fakes: a recording host sink, an in-memory socket, and a fake ontime server.
"""

import asyncio
from types import SimpleNamespace

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer


class FakeSink:
    def __init__(self):
        self.statuses = []
        self.variables = []
        self.feedback_calls = []
        self.logs = []
        self.action_inits = []

    def update_status(self, status, detail=None):
        self.statuses.append((status, detail))

    def set_variable_values(self, values):
        self.variables.append(values)

    def check_feedbacks(self, *feedback_ids):
        self.feedback_calls.append(feedback_ids)

    def log(self, level, message):
        self.logs.append((level, message))

    def init_actions(self, events):
        self.action_inits.append(events)

    @property
    def last_status(self):
        return self.statuses[-1][0] if self.statuses else None


class FakeSocket:
    """Quacks like aiohttp.ClientWebSocketResponse for the parts the connection uses."""

    def __init__(self, url):
        self.url = url
        self.closed = False
        self.close_code = None
        self.sent = []
        self._queue = asyncio.Queue()

    async def send_str(self, data):
        self.sent.append(data)

    async def close(self, code=1000):
        self.drop(code)
        return True

    def drop(self, code=1006):
        """Close from the remote side."""
        if not self.closed:
            self.closed = True
            self.close_code = code
            self._queue.put_nowait(None)

    def feed(self, text):
        self._queue.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=text))

    def exception(self):
        return None

    def __aiter__(self):
        return self

    async def __anext__(self):
        msg = await self._queue.get()
        if msg is None:
            raise StopAsyncIteration
        return msg


class SocketFactory:
    """Connector that hands out FakeSockets; queue exceptions in `failures` to fail opens."""

    def __init__(self):
        self.sockets = []
        self.urls = []
        self.failures = []

    async def __call__(self, url):
        self.urls.append(url)
        if self.failures:
            raise self.failures.pop(0)
        ws = FakeSocket(url)
        self.sockets.append(ws)
        return ws


class FakeOntime:
    """aiohttp test server exposing ontime's /ws and /events endpoints."""

    def __init__(self, events=None, events_status=200):
        self.events = events if events is not None else []
        self.events_status = events_status
        self.sockets = []
        self.received = []
        app = web.Application()
        app.router.add_get("/events", self._events)
        app.router.add_get("/ws", self._ws)
        self.server = TestServer(app)

    @property
    def host(self):
        return self.server.host

    @property
    def port(self):
        return self.server.port

    async def _events(self, request):
        if self.events_status != 200:
            return web.Response(status=self.events_status, text="unavailable")
        return web.json_response(self.events)

    async def _ws(self, request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.sockets.append(ws)
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                self.received.append(msg.data)
        return ws

    async def __aenter__(self):
        await self.server.start_server()
        return self

    async def __aexit__(self, *exc):
        for ws in self.sockets:
            await ws.close()
        await self.server.close()


async def wait_for(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def make_state(current=60_000, playback="play", **overrides):
    state = {
        "timer": {
            "current": current,
            "clock": 45_296_000,          # 12:34:56
            "startedAt": 45_000_000,      # 12:30:00
            "expectedFinish": 48_600_000,  # 13:30:00
            "addedTime": 300_000,         # 5 min delay
        },
        "playback": playback,
        "onAir": True,
        "titles": {
            "titleNow": "Keynote",
            "subtitleNow": "Opening",
            "presenterNow": "Ana",
            "noteNow": "mic 1",
            "titleNext": "Panel",
            "subtitleNext": "Q&A",
            "presenterNext": "Ben",
            "noteNext": "",
        },
        "timerMessage": {"text": "Wrap up", "visible": True},
        "publicMessage": {"text": "Welcome", "visible": False},
        "lowerMessage": {"text": "", "visible": False},
    }
    state.update(overrides)
    return state


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def sockets():
    return SocketFactory()
