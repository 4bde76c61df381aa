"""
Immutable event types for the session ledger.

Each line in ledger.jsonl is one event. Events record what happened to a
session; the session file itself stays the source of truth for state.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

SESSION_CREATED = "session.created"
COMMAND_EXECUTED = "command.executed"
COMMAND_UNDONE = "command.undone"
COMMAND_REDONE = "command.redone"
INTEGRITY_CHECKED = "integrity.checked"

EVENT_TYPES = frozenset({
    SESSION_CREATED,
    COMMAND_EXECUTED,
    COMMAND_UNDONE,
    COMMAND_REDONE,
    INTEGRITY_CHECKED,
})


@dataclass(frozen=True)
class SessionEvent:
    """
    Immutable entry in the session ledger.

    Written once, never modified.
    """

    event_type: str
    session_id: str
    timestamp: datetime
    actor: str  # "human:cli", "agent:codex", "system"
    payload: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.event_type not in EVENT_TYPES:
            raise ValueError(f"Invalid event_type: {self.event_type}")

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "event_type": self.event_type,
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat(),
            "actor": self.actor,
        }
        if self.payload:
            result["payload"] = self.payload
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionEvent:
        return cls(
            event_type=data["event_type"],
            session_id=data["session_id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            actor=data["actor"],
            payload=data.get("payload", {}),
        )

    @classmethod
    def from_json(cls, line: str) -> SessionEvent:
        return cls.from_dict(json.loads(line))


# Payload fields per event type
EVENT_PAYLOAD_FIELDS = {
    SESSION_CREATED: {
        "hypothesis": "Initial hypothesis text",
        "domain": "Domain template id, if any",
    },
    COMMAND_EXECUTED: {
        "command_id": "SessionCommand id",
        "command_type": "SessionCommand type",
        "description": "Human-readable description",
    },
    COMMAND_UNDONE: {
        "command_id": "SessionCommand id",
        "command_type": "SessionCommand type",
    },
    COMMAND_REDONE: {
        "command_id": "SessionCommand id",
        "command_type": "SessionCommand type",
    },
    INTEGRITY_CHECKED: {
        "checked": "Number of predictions verified",
        "failed": "Ids of predictions whose lock hash did not verify",
    },
}


def create_event(
    event_type: str,
    session_id: str,
    actor: str,
    *,
    payload: dict[str, Any] | None = None,
    timestamp: datetime | None = None,
) -> SessionEvent:
    payload = payload or {}
    # Unknown event types are rejected by SessionEvent itself
    if event_type in EVENT_PAYLOAD_FIELDS:
        unknown = sorted(set(payload) - set(EVENT_PAYLOAD_FIELDS[event_type]))
        if unknown:
            raise ValueError(f"Unknown payload fields for {event_type}: {', '.join(unknown)}")
    return SessionEvent(
        event_type=event_type,
        session_id=session_id,
        timestamp=timestamp or datetime.now(timezone.utc),
        actor=actor,
        payload=payload,
    )
