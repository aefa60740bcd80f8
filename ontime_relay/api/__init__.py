"""api — FastAPI REST + WebSocket bridge."""
from .server import create_app, set_instance, ws_pool

__all__ = ["create_app", "set_instance", "ws_pool"]
