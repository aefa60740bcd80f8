"""
core/connection_manager.py — Process-wide ontime connection registry for dependency injection.

init_connection() replaces (and closes) any previous connection, so a
reconfiguration always starts from a fresh instance with reconnect enabled.
"""

from __future__ import annotations

from typing import Optional

from .connection import DEFAULT_RECONNECT_INTERVAL, OntimeConnection, OntimeConnectionError
from .sink import HostSink

_connection: Optional[OntimeConnection] = None


async def init_connection(
    sink: HostSink,
    host: str,
    port: int,
    reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL,
) -> OntimeConnection:
    global _connection
    if _connection is not None:
        await _connection.close()
    _connection = OntimeConnection(
        sink=sink,
        host=host,
        port=port,
        reconnect_interval=reconnect_interval,
    )
    return _connection


def get_connection() -> OntimeConnection:
    if _connection is None:
        raise OntimeConnectionError("ontime connection not initialized. Call init_connection() first.")
    return _connection


async def dispose_connection() -> None:
    global _connection
    if _connection is not None:
        await _connection.close()
        _connection = None
