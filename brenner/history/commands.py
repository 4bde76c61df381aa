"""
Invertible session commands.

A command is data, not a closure: it carries a forward patch and an inverse
patch over session fields, so history can be persisted and replayed after a
restart. Patches hold serialized values (the same encoding as Session.to_dict).

Patch keys:
    scalar fields   "phase", "status", "hypothesis", ... -> serialized value
    "content", "selections"  -> {"set": {key: value}, "unset": [key, ...]}
    "predictions"   -> [{"id": ..., "value": dict | None, "position": int | None}]
    "artifact"      -> full artifact dict
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..artifact.model import Artifact
from ..lock.prediction import LockedPrediction
from ..util import parse_datetime

if TYPE_CHECKING:
    from ..session.model import Session


class CommandType(str, Enum):
    PHASE_ADVANCE = "phase_advance"
    PHASE_RETREAT = "phase_retreat"
    PHASE_JUMP = "phase_jump"
    SESSION_COMPLETE = "session_complete"
    SESSION_ABANDON = "session_abandon"
    CONTENT_SET = "content_set"
    SELECTION_SET = "selection_set"
    HYPOTHESIS_SET = "hypothesis_set"
    CONFIDENCE_SET = "confidence_set"
    PREDICTION_DRAFT = "prediction_draft"
    PREDICTION_LOCK = "prediction_lock"
    PREDICTION_REVEAL = "prediction_reveal"
    PREDICTION_AMEND = "prediction_amend"
    ARTIFACT_MERGE = "artifact_merge"
    ARTIFACT_STATUS = "artifact_status"


SCALAR_FIELDS = frozenset({
    "phase",
    "max_phase_reached",
    "status",
    "hypothesis",
    "confidence",
    "completed_at",
    "abandoned_at",
    "result",
    "updated_at",
})
MAP_FIELDS = frozenset({"content", "selections"})
DATETIME_FIELDS = frozenset({"completed_at", "abandoned_at", "updated_at"})


@dataclass(frozen=True)
class SessionCommand:
    id: str
    type: CommandType
    description: str
    timestamp: datetime
    forward: dict[str, Any] = field(default_factory=dict)
    inverse: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
            "forward": copy.deepcopy(self.forward),
            "inverse": copy.deepcopy(self.inverse),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionCommand:
        return cls(
            id=data["id"],
            type=CommandType(data["type"]),
            description=data.get("description", ""),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            forward=data.get("forward", {}),
            inverse=data.get("inverse", {}),
        )


def ensure_json_value(value: Any) -> Any:
    """Return a deep copy of `value`, rejecting anything that is not JSON-serializable."""
    try:
        return json.loads(json.dumps(value))
    except (TypeError, ValueError) as e:
        raise ValueError(f"Value is not JSON-serializable: {e}") from e


# -----------------------------------------------------------------------------
# Patch construction helpers
# -----------------------------------------------------------------------------


def capture(session: Session, names: list[str]) -> dict[str, Any]:
    """Serialized current values of scalar fields, for an inverse patch."""
    state = session.scalar_state()
    return {name: state[name] for name in names}


def map_entry_patch(mapping: dict[str, Any], key: str) -> dict[str, Any]:
    """Patch restoring `mapping[key]` to its current value (or absence)."""
    if key in mapping:
        return {"set": {key: copy.deepcopy(mapping[key])}}
    return {"unset": [key]}


def prediction_patch(prediction_id: str, value: LockedPrediction | None, position: int | None = None) -> dict[str, Any]:
    return {"id": prediction_id, "value": value.to_dict() if value is not None else None, "position": position}


# -----------------------------------------------------------------------------
# Patch application
# -----------------------------------------------------------------------------


def _decode_scalar(name: str, value: Any) -> Any:
    from ..session.phases import SessionPhase, SessionStatus

    if name in {"phase", "max_phase_reached"}:
        return SessionPhase(value)
    if name == "status":
        return SessionStatus(value)
    if name in DATETIME_FIELDS:
        return parse_datetime(value)
    return copy.deepcopy(value)


def _apply_map(mapping: dict[str, Any], patch: dict[str, Any]) -> None:
    for key in patch.get("unset", []):
        mapping.pop(key, None)
    for key, value in patch.get("set", {}).items():
        mapping[key] = copy.deepcopy(value)


def _apply_predictions(predictions: list[LockedPrediction], entries: list[dict[str, Any]]) -> None:
    for entry in entries:
        pid = entry["id"]
        index = next((i for i, p in enumerate(predictions) if p.id == pid), None)
        value = entry.get("value")
        if value is None:
            if index is not None:
                predictions.pop(index)
            continue
        prediction = LockedPrediction.from_dict(value)
        if index is not None:
            predictions[index] = prediction
        elif entry.get("position") is not None:
            predictions.insert(int(entry["position"]), prediction)
        else:
            predictions.append(prediction)


def apply_patch(session: Session, patch: dict[str, Any]) -> None:
    """Apply a forward or inverse patch to `session` in place."""
    for name, value in patch.items():
        if name in SCALAR_FIELDS:
            setattr(session, name, _decode_scalar(name, value))
        elif name in MAP_FIELDS:
            _apply_map(getattr(session, name), value)
        elif name == "predictions":
            _apply_predictions(session.predictions, value)
        elif name == "artifact":
            session.artifact = Artifact.from_dict(value)
        else:
            raise ValueError(f"Unknown patch field: {name}")
