"""
core/instance.py — Standalone host for the ontime connection.

RelayInstance implements the HostSink contract: it keeps the reported status,
the published variables, the evaluated feedbacks and the action registry, and
fans every change out to async listeners (API WebSocket clients, OSC feedback).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine, Optional

from .actions import ActionDefinition, ActionError, build_actions
from .connection import OntimeConnection, OntimeConnectionError
from .enums import FeedbackId, InstanceStatus
from .events import EventEntry
from .feedbacks import evaluate_feedback

log = logging.getLogger(__name__)

Listener = Callable[[dict], Coroutine[Any, Any, None]]

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class RelayInstance:
    def __init__(self) -> None:
        self.status: InstanceStatus = InstanceStatus.DISCONNECTED
        self.status_detail: Optional[str] = None
        self.variables: dict[str, Any] = {}
        self.feedbacks: dict[str, bool] = {}
        self.actions: dict[str, ActionDefinition] = build_actions([])
        self.connection: Optional[OntimeConnection] = None
        self._listeners: list[Listener] = []
        self._pending: set[asyncio.Task] = set()

    def attach(self, connection: OntimeConnection) -> None:
        self.connection = connection

    def add_listener(self, callback: Listener) -> None:
        """Register an async callback receiving {"event": ..., "data": ...} dicts."""
        self._listeners.append(callback)

    def _notify(self, event: str, data: Any) -> None:
        if not self._listeners:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.debug(f"No running loop; '{event}' not broadcast")
            return
        message = {"event": event, "data": data}
        for cb in self._listeners:
            task = loop.create_task(cb(message))
            self._pending.add(task)
            task.add_done_callback(self._listener_done)

    def _listener_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error(f"Listener error: {task.exception()}")

    # ── HostSink ──────────────────────────────────────────────────────

    def update_status(self, status: InstanceStatus, detail: Optional[str] = None) -> None:
        self.status = status
        self.status_detail = detail
        log.info(f"Status: {status.value}" + (f" ({detail})" if detail else ""))
        self._notify("status", self.get_status())

    def set_variable_values(self, values: dict[str, Any]) -> None:
        self.variables.update(values)
        self._notify("variables", values)

    def check_feedbacks(self, *feedback_ids: str) -> None:
        state = self.connection.state if self.connection else {}
        changed = {}
        for fid in feedback_ids:
            key = FeedbackId(fid).value
            changed[key] = evaluate_feedback(key, state)
        self.feedbacks.update(changed)
        self._notify("feedbacks", changed)

    def log(self, level: str, message: str) -> None:
        log.log(_LEVELS.get(level.lower(), logging.INFO), message)

    def init_actions(self, events: list[EventEntry]) -> None:
        self.actions = build_actions(events)
        log.info(f"Actions registered ({len(events)} events available)")
        self._notify("actions", [a.to_dict() for a in self.actions.values()])

    # ── Commands ──────────────────────────────────────────────────────

    def _require_connection(self) -> OntimeConnection:
        if self.connection is None:
            raise OntimeConnectionError("ontime connection not initialized")
        return self.connection

    async def run_action(self, action_id: str, value: Any = None) -> dict:
        """Send the frame for a catalogue action. Raises ActionError for unknown ids or bad values."""
        action = self.actions.get(action_id)
        if action is None:
            raise ActionError(f"Action '{action_id}' not found")
        payload = action.build_payload(value)
        sent = await self._require_connection().socket_send_json(action.message_type, payload)
        log.info(f"Action {action_id} → {action.message_type} payload={payload!r} sent={sent}")
        return {"action": action_id, "type": action.message_type, "payload": payload, "sent": sent}

    async def send(self, type: str, payload: Any = None) -> dict:
        sent = await self._require_connection().socket_send_json(type, payload)
        return {"type": type, "payload": payload, "sent": sent}

    async def refetch(self) -> dict:
        connection = self._require_connection()
        ok = await connection.init_events()
        if ok:
            self.init_actions(list(connection.events))
        return {"status": "ok" if ok else "failed", "events": len(connection.events)}

    # ── Status ────────────────────────────────────────────────────────

    def is_connected(self) -> bool:
        return self.connection is not None and self.connection.is_connected()

    def get_status(self) -> dict:
        return {
            "status": self.status.value,
            "detail": self.status_detail,
            "connected": self.is_connected(),
            "ws_url": self.connection.ws_url if self.connection else None,
        }

    def get_events(self) -> list[dict]:
        if self.connection is None:
            return []
        return [e.to_dict() for e in self.connection.events]
