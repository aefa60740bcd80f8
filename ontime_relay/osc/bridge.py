"""
osc/bridge.py — TouchOSC / OSC UDP bridge.

Listens for OSC messages on a UDP port and maps them to ontime actions.
Also sends feedback (variables + feedback states) back to OSC clients on reply port.

TouchOSC address map:
  /ontime/{action_id}  [value]   → run catalogue action (start, pause, add_time 5, ...)
  /ontime/state/query            → replay all variables and feedbacks

Feedback messages sent back:
  /ontime/variable/{name}        → variable value (time, clock, title_now, ...)
  /ontime/feedback/{name}        → 0 or 1
  /ontime/status                 → connection status string
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from pythonosc.dispatcher import Dispatcher
from pythonosc.osc_server import AsyncIOOSCUDPServer
from pythonosc.udp_client import SimpleUDPClient

log = logging.getLogger(__name__)


class OSCBridge:
    """
    UDP OSC server that translates TouchOSC / Open Sound Control messages
    into ontime actions, and sends feedback back to clients.
    """

    def __init__(
        self,
        instance: Any,
        listen_host: str = "0.0.0.0",
        listen_port: int = 9000,
        reply_port: int = 9001,
        client_host: str = "255.255.255.255",
    ):
        self.listen_host = listen_host
        self.listen_port = listen_port
        self.reply_port = reply_port
        self.client_host = client_host

        self._instance = instance

        self._server: Optional[Any] = None
        self._transport: Optional[Any] = None
        self._reply_client: Optional[Any] = None
        self._running = False

    # ──────────────────────────────────────────────────────────────────
    # Server lifecycle
    # ──────────────────────────────────────────────────────────────────

    async def start(self) -> None:
        dispatcher = Dispatcher()
        self._setup_dispatcher(dispatcher)

        self._server = AsyncIOOSCUDPServer(
            (self.listen_host, self.listen_port),
            dispatcher,
            asyncio.get_running_loop(),
        )
        self._transport, _ = await self._server.create_serve_endpoint()
        self._reply_client = SimpleUDPClient(self.client_host, self.reply_port, allow_broadcast=True)
        self._instance.add_listener(self.on_instance_event)
        self._running = True
        log.info(f"OSC bridge listening on {self.listen_host}:{self.listen_port} → reply to {self.client_host}:{self.reply_port}")

    async def stop(self) -> None:
        if self._transport:
            self._transport.close()
        self._running = False
        log.info("OSC bridge stopped.")

    def is_running(self) -> bool:
        return self._running

    # ──────────────────────────────────────────────────────────────────
    # Dispatcher setup
    # ──────────────────────────────────────────────────────────────────

    def _setup_dispatcher(self, dispatcher: Any) -> None:
        dispatcher.map("/ontime/state/query", self._handle_state_query)
        dispatcher.map("/ontime/*", self._handle_action)
        dispatcher.set_default_handler(self._handle_unknown)

    # ──────────────────────────────────────────────────────────────────
    # OSC message handlers
    # ──────────────────────────────────────────────────────────────────

    def _run(self, coro) -> None:
        """Schedule a coroutine on the running event loop."""
        asyncio.get_running_loop().create_task(coro)

    def _handle_action(self, address: str, *args) -> None:
        # /ontime/{action_id} [value]
        parts = address.strip("/").split("/")
        if len(parts) != 2:
            log.debug(f"[OSC] Unhandled: {address} {args}")
            return
        action_id = parts[1]
        value = args[0] if args else None
        log.info(f"[OSC] Action: {action_id} {value!r}")
        self._run(self._run_action(action_id, value))

    def _handle_state_query(self, address: str, *args) -> None:
        self._send_state()

    def _handle_unknown(self, address: str, *args) -> None:
        log.debug(f"[OSC] Unhandled: {address} {args}")

    # ──────────────────────────────────────────────────────────────────
    # Async action implementations
    # ──────────────────────────────────────────────────────────────────

    async def _run_action(self, action_id: str, value: Any) -> None:
        try:
            await self._instance.run_action(action_id, value)
        except Exception as e:
            log.error(f"OSC action error: {e}")

    async def on_instance_event(self, message: dict) -> None:
        """RelayInstance listener: forward status, variables and feedbacks as OSC."""
        event, data = message["event"], message["data"]
        if event == "variables":
            for name, value in data.items():
                self._send_osc(f"/ontime/variable/{name}", _osc_value(value))
        elif event == "feedbacks":
            for name, active in data.items():
                self._send_osc(f"/ontime/feedback/{name}", 1 if active else 0)
        elif event == "status":
            self._send_osc("/ontime/status", data["status"])

    def _send_state(self) -> None:
        """Replay current state to OSC clients."""
        self._send_osc("/ontime/status", self._instance.status.value)
        for name, value in self._instance.variables.items():
            self._send_osc(f"/ontime/variable/{name}", _osc_value(value))
        for name, active in self._instance.feedbacks.items():
            self._send_osc(f"/ontime/feedback/{name}", 1 if active else 0)

    def _send_osc(self, address: str, value: Any) -> None:
        if self._reply_client:
            try:
                self._reply_client.send_message(address, value)
            except Exception as e:
                log.debug(f"OSC send error: {e}")


def _osc_value(value: Any) -> Any:
    # OSC has no null; bools travel as ints
    if value is None:
        return ""
    if isinstance(value, bool):
        return int(value)
    return value
