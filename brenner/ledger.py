"""
Append-only session event ledger.

INVARIANT: existing ledger lines are never modified. The only write
operations are append() and append_many().
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Iterator, Literal, Sequence

from .events import SessionEvent

LEDGER_FILENAME = "ledger.jsonl"


class SessionLedger:
    def __init__(self, root: Path):
        """
        Args:
            root: Brenner home directory (the ledger file lives inside it)
        """
        self.root = root
        self.ledger_path = root / LEDGER_FILENAME

    def _ensure_dir(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def append(self, event: SessionEvent) -> None:
        self._ensure_dir()
        with self.ledger_path.open("a", encoding="utf-8") as f:
            f.write(event.to_json() + "\n")

    def append_many(self, events: Sequence[SessionEvent]) -> None:
        """Append several events in a single file operation."""
        if not events:
            return
        self._ensure_dir()
        with self.ledger_path.open("a", encoding="utf-8") as f:
            for event in events:
                f.write(event.to_json() + "\n")

    def iter_events(self) -> Iterator[SessionEvent]:
        """Events in append order."""
        if not self.ledger_path.exists():
            return

        with self.ledger_path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    yield SessionEvent.from_json(line)

    def query(
        self,
        *,
        session_id: str | None = None,
        event_type: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
        order: Literal["asc", "desc"] = "asc",
    ) -> list[SessionEvent]:
        events = [
            e
            for e in self.iter_events()
            if (session_id is None or e.session_id == session_id)
            and (event_type is None or e.event_type == event_type)
            and (since is None or e.timestamp >= since)
            and (until is None or e.timestamp <= until)
        ]
        if order == "desc":
            events.reverse()
        if limit is not None:
            events = events[:limit]
        return events

    def for_session(self, session_id: str) -> list[SessionEvent]:
        return self.query(session_id=session_id)
