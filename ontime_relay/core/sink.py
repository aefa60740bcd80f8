"""
core/sink.py — The host-side contract the connection publishes into.

The connection never stores variables or evaluates feedbacks itself; it calls
these methods on whatever host it was given (RelayInstance in this project,
a fake in tests).
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

from .enums import InstanceStatus
from .events import EventEntry


class HostSink(Protocol):
    def update_status(self, status: InstanceStatus, detail: Optional[str] = None) -> None: ...

    def set_variable_values(self, values: dict[str, Any]) -> None: ...

    def check_feedbacks(self, *feedback_ids: str) -> None: ...

    def log(self, level: str, message: str) -> None: ...

    def init_actions(self, events: list[EventEntry]) -> None: ...
