"""
core/events.py — ontime event directory (id + label) loaded over HTTP.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

log = logging.getLogger(__name__)


class EventFetchError(Exception):
    pass


@dataclass(frozen=True)
class EventEntry:
    id: str
    label: str

    def to_dict(self) -> dict:
        return {"id": self.id, "label": self.label}


def parse_events(data: Any) -> list[EventEntry]:
    """Map the /events JSON array onto EventEntry records. Only id + title are consumed."""
    if not isinstance(data, list):
        raise EventFetchError(f"Expected a JSON array, got {type(data).__name__}")
    try:
        return [EventEntry(id=str(evt["id"]), label=str(evt.get("title") or "")) for evt in data]
    except (KeyError, TypeError, AttributeError) as e:
        raise EventFetchError(f"Malformed event entry: {e}") from e


async def fetch_events(session: aiohttp.ClientSession, base_url: str) -> list[EventEntry]:
    """GET {base_url}/events. Raises EventFetchError on any network, status or parse failure."""
    url = f"{base_url}/events"
    try:
        async with session.get(url) as resp:
            resp.raise_for_status()
            data = await resp.json()
    except (aiohttp.ClientError, TimeoutError, ValueError) as e:
        raise EventFetchError(f"GET {url} failed: {e}") from e
    return parse_events(data)
