"""core — ontime connection management."""
from .actions import ActionDefinition, ActionError, build_actions
from .connection import MessageOutcome, OntimeConnection, OntimeConnectionError
from .connection_manager import dispose_connection, get_connection, init_connection
from .enums import FeedbackId, InstanceStatus, VariableId
from .events import EventEntry
from .instance import RelayInstance

__all__ = [
    "ActionDefinition",
    "ActionError",
    "build_actions",
    "MessageOutcome",
    "OntimeConnection",
    "OntimeConnectionError",
    "dispose_connection",
    "get_connection",
    "init_connection",
    "FeedbackId",
    "InstanceStatus",
    "VariableId",
    "EventEntry",
    "RelayInstance",
]
