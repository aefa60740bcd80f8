"""
core/actions.py — Named ontime commands and the outbound frames they produce.

Each action maps to one {type, payload} message on the ontime socket.
Event-selecting actions take their choices from the current event directory,
so the catalogue is rebuilt whenever ontime asks for a refetch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .events import EventEntry


class ActionError(Exception):
    pass


@dataclass
class ActionOption:
    id: str
    label: str
    type: str  # "dropdown" | "number" | "text" | "checkbox"
    default: Any = None
    choices: list[dict] = field(default_factory=list)

    def coerce(self, value: Any) -> Any:
        if value is None:
            value = self.default
        if value is None:
            raise ActionError(f"Option '{self.id}' requires a value")

        if self.type == "number":
            try:
                number = float(value)
            except (TypeError, ValueError):
                raise ActionError(f"Option '{self.id}' expects a number, got {value!r}")
            return int(number) if number.is_integer() else number

        if self.type == "checkbox":
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "on", "yes")
            return bool(value)

        if self.type == "dropdown":
            value = str(value)
            if value not in {c["id"] for c in self.choices}:
                raise ActionError(f"Unknown choice {value!r} for option '{self.id}'")
            return value

        return str(value)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "type": self.type,
            "default": self.default,
            "choices": self.choices,
        }


@dataclass
class ActionDefinition:
    id: str
    name: str
    message_type: str
    option: Optional[ActionOption] = None

    def build_payload(self, value: Any = None) -> Any:
        if self.option is None:
            return None
        return self.option.coerce(value)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "message_type": self.message_type,
            "option": self.option.to_dict() if self.option else None,
        }


def _event_option(events: list[EventEntry]) -> ActionOption:
    choices = [e.to_dict() for e in events]
    return ActionOption(
        id="value",
        label="Event",
        type="dropdown",
        default=choices[0]["id"] if choices else None,
        choices=choices,
    )


def _text(label: str) -> ActionOption:
    return ActionOption(id="value", label=label, type="text", default="")


def _toggle(label: str) -> ActionOption:
    return ActionOption(id="value", label=label, type="checkbox", default=True)


def build_actions(events: list[EventEntry]) -> dict[str, ActionDefinition]:
    """Build the action catalogue for the given event directory."""
    definitions = [
        ActionDefinition("start", "Start selected event", "start"),
        ActionDefinition("start_selected", "Start event by id", "start-id", _event_option(events)),
        ActionDefinition("load_selected", "Load event by id", "load-id", _event_option(events)),
        ActionDefinition("start_next", "Start next event", "start-next"),
        ActionDefinition("pause", "Pause running timer", "pause"),
        ActionDefinition("stop", "Stop running timer", "stop"),
        ActionDefinition("reload", "Reload selected event", "reload"),
        ActionDefinition("roll", "Start roll mode", "roll"),
        ActionDefinition("previous", "Select previous event", "previous"),
        ActionDefinition("next", "Select next event", "next"),
        ActionDefinition(
            "add_time",
            "Add / remove time (minutes)",
            "delay",
            ActionOption(id="value", label="Minutes", type="number", default=1),
        ),
        ActionDefinition("set_on_air", "Set on-air state", "set-onAir", _toggle("On air")),
        ActionDefinition("set_speaker_message", "Set speaker message", "set-timer-message-text", _text("Message")),
        ActionDefinition("set_public_message", "Set public message", "set-public-message-text", _text("Message")),
        ActionDefinition("set_lower_message", "Set lower third message", "set-lower-message-text", _text("Message")),
        ActionDefinition(
            "speaker_message_visible", "Show / hide speaker message", "set-timer-message-visible", _toggle("Visible")
        ),
        ActionDefinition(
            "public_message_visible", "Show / hide public message", "set-public-message-visible", _toggle("Visible")
        ),
        ActionDefinition(
            "lower_message_visible", "Show / hide lower third message", "set-lower-message-visible", _toggle("Visible")
        ),
    ]
    return {d.id: d for d in definitions}
