"""
core/timefmt.py — Millisecond values → zero-padded H/M/S display parts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE


@dataclass(frozen=True)
class TimeParts:
    hours: str = "00"
    minutes: str = "00"
    seconds: str = "00"

    def hms(self) -> str:
        return f"{self.hours}:{self.minutes}:{self.seconds}"

    def hm(self) -> str:
        return f"{self.hours}:{self.minutes}"


def _split(ms: float) -> tuple[int, int, int]:
    total = int(abs(ms)) // MS_PER_SECOND
    return total // 3600, (total % 3600) // 60, total % 60


def to_readable_time(ms: Optional[float]) -> TimeParts:
    """
    Split a millisecond value (timer, clock, start or finish time) into display parts.

    None → all parts "00". The magnitude is truncated to whole seconds and each
    part zero-padded to two digits; negative values carry a '-' on the hours.
    """
    if ms is None:
        return TimeParts()
    hours, minutes, seconds = _split(ms)
    sign = "-" if ms < 0 else ""
    return TimeParts(f"{sign}{hours:02d}", f"{minutes:02d}", f"{seconds:02d}")


def ms_to_time(ms: Optional[float]) -> str:
    """Format a delay in milliseconds as HH:MM:SS, with a leading '-' when negative."""
    if ms is None:
        return "00:00:00"
    hours, minutes, seconds = _split(ms)
    sign = "-" if ms < 0 else ""
    return f"{sign}{hours:02d}:{minutes:02d}:{seconds:02d}"
