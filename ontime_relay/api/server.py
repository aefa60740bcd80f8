"""
api/server.py — FastAPI REST API + WebSocket relay bridge.

Exposes the ontime relay to control surfaces that speak HTTP or WebSocket:
  - /health, /healthz        uptime monitoring (503 when ontime is disconnected)
  - /variables, /feedbacks   latest values published from ontime state pushes
  - /events, /refetch        event directory and a manual reload
  - /actions                 action catalogue; POST /actions/{id} runs one
  - /send                    raw {type, payload} passthrough to ontime
  - /ws                      live instance events + command channel (?token= auth)
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from ontime_relay import __version__
from ontime_relay.config import get_settings
from ontime_relay.core import ActionError, OntimeConnectionError, RelayInstance

log = logging.getLogger(__name__)

_instance: Optional[RelayInstance] = None
_osc_bridge = None


def set_instance(instance: RelayInstance, osc=None) -> None:
    global _instance, _osc_bridge
    _instance = instance
    _osc_bridge = osc


# ──────────────────────────────────────────────────────────────────────────────
# WebSocket connection pool
# ──────────────────────────────────────────────────────────────────────────────

class WSConnectionPool:
    def __init__(self):
        self._connections: list[WebSocket] = []

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self._connections.append(ws)
        log.info(f"WS client connected. Total: {len(self._connections)}")

    def disconnect(self, ws: WebSocket) -> None:
        if ws in self._connections:
            self._connections.remove(ws)
        log.info(f"WS client disconnected. Total: {len(self._connections)}")

    async def broadcast(self, message: dict) -> None:
        if not self._connections:
            return
        data = json.dumps(message)
        dead = []
        for ws in self._connections:
            try:
                await ws.send_text(data)
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)

    def count(self) -> int:
        return len(self._connections)


ws_pool = WSConnectionPool()


# ──────────────────────────────────────────────────────────────────────────────
# Request bodies
# ──────────────────────────────────────────────────────────────────────────────

class ActionBody(BaseModel):
    value: Any = None


class SendBody(BaseModel):
    type: str
    payload: Any = None


# ──────────────────────────────────────────────────────────────────────────────
# App factory
# ──────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    log.info(f"ontime-relay API starting on {settings.api.host}:{settings.api.port}")

    # Relay instance events (status, variables, feedbacks, actions) to WS clients
    if _instance is not None:
        _instance.add_listener(ws_pool.broadcast)
        log.info("Instance event passthrough registered")

    yield
    log.info("ontime-relay API shutting down.")


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="ontime-relay",
        description="ontime show-control relay — REST, WebSocket and OSC surfaces",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── REST auth dependency ──────────────────────────────────────────

    async def verify_api_key(authorization: Optional[str] = Header(None)):
        if settings.api.api_key:
            if not authorization or not authorization.startswith("Bearer "):
                raise HTTPException(status_code=401, detail="Missing Bearer token")
            token = authorization.removeprefix("Bearer ").strip()
            if token != settings.api.api_key:
                raise HTTPException(status_code=403, detail="Invalid API key")

    auth = Depends(verify_api_key)

    def instance() -> RelayInstance:
        if _instance is None:
            raise HTTPException(status_code=503, detail="Relay instance not initialized")
        return _instance

    # ─────────────────────────────────────────────────────────────────
    # Health
    # ─────────────────────────────────────────────────────────────────

    @app.get("/health", tags=["System"])
    async def health():
        inst = instance()
        return {
            "status": "ok",
            "ontime": inst.get_status(),
            "ws_clients": ws_pool.count(),
            "osc_active": _osc_bridge.is_running() if _osc_bridge else False,
            "version": __version__,
        }

    @app.get("/healthz", tags=["System"])
    async def healthz():
        """Machine-readable health check. Returns 503 when ontime is disconnected."""
        if not instance().is_connected():
            raise HTTPException(
                status_code=503,
                detail={"status": "degraded", "reason": "ontime not connected"}
            )
        return {"status": "ok"}

    # ─────────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────────

    @app.get("/variables", tags=["State"], dependencies=[auth])
    async def variables():
        return instance().variables

    @app.get("/variables/{name}", tags=["State"], dependencies=[auth])
    async def variable(name: str):
        values = instance().variables
        if name not in values:
            raise HTTPException(status_code=404, detail=f"Variable '{name}' not found")
        return {"name": name, "value": values[name]}

    @app.get("/feedbacks", tags=["State"], dependencies=[auth])
    async def feedbacks():
        return instance().feedbacks

    # ─────────────────────────────────────────────────────────────────
    # Events
    # ─────────────────────────────────────────────────────────────────

    @app.get("/events", tags=["Events"], dependencies=[auth])
    async def events():
        return instance().get_events()

    @app.post("/refetch", tags=["Events"], dependencies=[auth])
    async def refetch():
        try:
            return await instance().refetch()
        except OntimeConnectionError as e:
            raise HTTPException(status_code=503, detail=str(e))

    # ─────────────────────────────────────────────────────────────────
    # Actions
    # ─────────────────────────────────────────────────────────────────

    @app.get("/actions", tags=["Actions"], dependencies=[auth])
    async def list_actions():
        return [a.to_dict() for a in instance().actions.values()]

    @app.post("/actions/{action_id}", tags=["Actions"], dependencies=[auth])
    async def run_action(action_id: str, body: Optional[ActionBody] = None):
        inst = instance()
        if action_id not in inst.actions:
            raise HTTPException(status_code=404, detail=f"Action '{action_id}' not found")
        try:
            return await inst.run_action(action_id, body.value if body else None)
        except ActionError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except OntimeConnectionError as e:
            raise HTTPException(status_code=503, detail=str(e))

    @app.post("/send", tags=["Actions"], dependencies=[auth])
    async def send(body: SendBody):
        try:
            return await instance().send(body.type, body.payload)
        except OntimeConnectionError as e:
            raise HTTPException(status_code=503, detail=str(e))

    # ─────────────────────────────────────────────────────────────────
    # WebSocket relay — with auth
    # ─────────────────────────────────────────────────────────────────

    @app.websocket("/ws")
    async def websocket_endpoint(
        websocket: WebSocket,
        token: Optional[str] = Query(None),
    ):
        # Auth check: if API key is set, require it as ?token= query param
        if settings.api.api_key:
            if not token or token != settings.api.api_key:
                await websocket.close(code=4001, reason="Unauthorized")
                return

        await ws_pool.connect(websocket)
        # Send initial state on connect
        try:
            await websocket.send_text(json.dumps({
                "event": "connected",
                "data": _snapshot(),
            }))
        except Exception as e:
            log.debug(f"WS initial state send failed: {e}")

        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    msg = json.loads(raw)
                    response = await _handle_ws_command(msg)
                    await websocket.send_text(json.dumps(response))
                except json.JSONDecodeError:
                    await websocket.send_text(json.dumps({"error": "Invalid JSON"}))
                except (ActionError, OntimeConnectionError) as e:
                    await websocket.send_text(json.dumps({"error": str(e)}))
                except KeyError as e:
                    await websocket.send_text(json.dumps({"error": f"Missing parameter: {e}"}))
                except Exception as e:
                    log.error(f"WS command error: {e}")
                    await websocket.send_text(json.dumps({"error": str(e)}))
        except WebSocketDisconnect:
            pass
        finally:
            ws_pool.disconnect(websocket)

    def _snapshot() -> dict:
        inst = instance()
        return {
            "ontime": inst.get_status(),
            "variables": inst.variables,
            "feedbacks": inst.feedbacks,
            "version": __version__,
        }

    async def _handle_ws_command(msg: Any) -> dict:
        if not isinstance(msg, dict):
            return {"error": "Expected a JSON object"}
        cmd = msg.get("cmd", "")
        params = msg.get("params") or {}
        if not isinstance(params, dict):
            return {"error": "params must be a JSON object"}

        match cmd:
            case "action":
                return await instance().run_action(params["id"], params.get("value"))
            case "send":
                return await instance().send(params["type"], params.get("payload"))
            case "refetch":
                return await instance().refetch()
            case "get_status":
                return _snapshot()
            case _:
                return {"error": f"Unknown command: {cmd}"}

    return app
