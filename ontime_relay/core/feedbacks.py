"""
core/feedbacks.py — Boolean indicators evaluated against the latest ontime state.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from .enums import FeedbackId

Predicate = Callable[[dict], bool]


def _playback_is(value: str) -> Predicate:
    return lambda state: state.get("playback") == value


def _message_visible(key: str) -> Predicate:
    def check(state: dict) -> bool:
        message = state.get(key) or {}
        return bool(message.get("visible", False))
    return check


FEEDBACKS: dict[FeedbackId, Predicate] = {
    FeedbackId.COLOR_RUNNING: _playback_is("play"),
    FeedbackId.COLOR_PAUSED: _playback_is("pause"),
    FeedbackId.COLOR_STOPPED: _playback_is("stop"),
    FeedbackId.COLOR_ROLL: _playback_is("roll"),
    FeedbackId.COLOR_NEGATIVE: lambda state: bool(state.get("isNegative", False)),
    FeedbackId.ON_AIR: lambda state: bool(state.get("onAir", False)),
    FeedbackId.SPEAKER_MESSAGE_VISIBLE: _message_visible("timerMessage"),
    FeedbackId.PUBLIC_MESSAGE_VISIBLE: _message_visible("publicMessage"),
    FeedbackId.LOWER_MESSAGE_VISIBLE: _message_visible("lowerMessage"),
}


def evaluate_feedback(feedback_id: Any, state: Optional[dict]) -> bool:
    """Unknown ids and a missing state both evaluate to False."""
    if not state:
        return False
    try:
        predicate = FEEDBACKS[FeedbackId(feedback_id)]
    except ValueError:
        return False
    return predicate(state)
