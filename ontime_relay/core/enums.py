"""
core/enums.py — Identifiers shared by the connection, the host instance and the surfaces.
"""

from __future__ import annotations

from enum import Enum


class InstanceStatus(str, Enum):
    OK = "ok"
    CONNECTING = "connecting"
    DISCONNECTED = "disconnected"
    BAD_CONFIG = "bad_config"


class VariableId(str, Enum):
    TIME = "time"
    TIME_HM = "time_hm"
    TIME_H = "time_h"
    TIME_M = "time_m"
    TIME_S = "time_s"
    CLOCK = "clock"
    TIMER_START = "timer_start"
    TIMER_FINISH = "timer_finish"
    TIMER_DELAY = "timer_delay"
    PLAY_STATE = "play_state"
    ON_AIR = "on_air"
    TITLE_NOW = "title_now"
    SUBTITLE_NOW = "subtitle_now"
    SPEAKER_NOW = "speaker_now"
    NOTE_NOW = "note_now"
    TITLE_NEXT = "title_next"
    SUBTITLE_NEXT = "subtitle_next"
    SPEAKER_NEXT = "speaker_next"
    NOTE_NEXT = "note_next"
    SPEAKER_MESSAGE = "speaker_message"
    PUBLIC_MESSAGE = "public_message"
    LOWER_MESSAGE = "lower_message"


class FeedbackId(str, Enum):
    COLOR_RUNNING = "color_running"
    COLOR_PAUSED = "color_paused"
    COLOR_STOPPED = "color_stopped"
    COLOR_ROLL = "color_roll"
    COLOR_NEGATIVE = "color_negative"
    ON_AIR = "on_air"
    SPEAKER_MESSAGE_VISIBLE = "speaker_message_visible"
    PUBLIC_MESSAGE_VISIBLE = "public_message_visible"
    LOWER_MESSAGE_VISIBLE = "lower_message_visible"


# Feedbacks re-evaluated after every state push
STATE_FEEDBACKS: tuple[FeedbackId, ...] = (
    FeedbackId.COLOR_RUNNING,
    FeedbackId.COLOR_PAUSED,
    FeedbackId.COLOR_STOPPED,
    FeedbackId.COLOR_ROLL,
    FeedbackId.COLOR_NEGATIVE,
    FeedbackId.ON_AIR,
    FeedbackId.SPEAKER_MESSAGE_VISIBLE,
    FeedbackId.PUBLIC_MESSAGE_VISIBLE,
    FeedbackId.LOWER_MESSAGE_VISIBLE,
)
