from __future__ import annotations

import json
from typing import Any, Dict


def make_event(event_type: str, data: Dict[str, Any]) -> str:
    """Serialize an SSE event frame with JSON payload."""
    payload = json.dumps(data, ensure_ascii=False)
    return f"event: {event_type}\ndata: {payload}\n\n"


def parse_events(raw: str) -> list[tuple[str, Dict[str, Any]]]:
    """Split a raw SSE body back into (event, data) pairs."""
    events = []
    for frame in raw.split("\n\n"):
        if not frame.strip():
            continue
        event_type, data = "message", {}
        for line in frame.splitlines():
            if line.startswith("event: "):
                event_type = line[len("event: "):]
            elif line.startswith("data: "):
                data = json.loads(line[len("data: "):])
        events.append((event_type, data))
    return events
