from __future__ import annotations

import json
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

SCHEMA = "net-planner-session-log/v1"


@dataclass
class SessionEvent:
    ts: str
    kind: str
    data: Dict[str, Any]


class SessionLogger:
    """In-memory session log of store mutations and canvas gestures.

    Subscribe ``add`` to a TopologyStore / InteractionController to capture
    everything the user did; save it as JSON when debugging a session.
    """

    def __init__(self, max_events: int = 5000):
        self.max_events = max_events
        self.events: List[SessionEvent] = []

    def _now(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def add(self, kind: str, **data: Any) -> None:
        ev = SessionEvent(ts=self._now(), kind=str(kind), data=dict(data))
        self.events.append(ev)
        if len(self.events) > self.max_events:
            # keep the newest events
            self.events = self.events[-self.max_events :]

    def clear(self) -> None:
        self.events.clear()

    def kinds(self) -> List[str]:
        return [e.kind for e in self.events]

    def tail(self, n: int = 20, kind: Optional[str] = None) -> List[SessionEvent]:
        events = self.events if kind is None else [e for e in self.events if e.kind == kind]
        return events[-n:] if n > 0 else []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": SCHEMA,
            "eventCount": len(self.events),
            "events": [asdict(e) for e in self.events],
        }

    def save_json(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False, default=str)

    @staticmethod
    def default_filename(now: Optional[datetime] = None) -> str:
        ts = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%SZ")
        return f"session_log_{ts}.session.json"
