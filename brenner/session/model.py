"""
Session record and summaries.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from ..artifact.model import Artifact
from ..history.engine import CommandHistory
from ..lock.prediction import LockedPrediction
from ..util import isoformat, parse_datetime
from .phases import SessionPhase, SessionStatus, phase_index

DEFAULT_CONFIDENCE = 50


@dataclass
class Session:
    """
    One hypothesis under refinement.

    Mutated only through SessionMachine operations, which wrap every change in
    a SessionCommand recorded on `history`.
    """

    id: str
    created_at: datetime
    updated_at: datetime
    artifact: Artifact
    phase: SessionPhase = SessionPhase.INTAKE
    status: SessionStatus = SessionStatus.ACTIVE
    hypothesis: str = ""
    confidence: int = DEFAULT_CONFIDENCE
    domain: str | None = None
    max_phase_reached: SessionPhase = SessionPhase.INTAKE
    completed_at: datetime | None = None
    abandoned_at: datetime | None = None
    result: Any = None
    content: dict[str, Any] = field(default_factory=dict)
    selections: dict[str, Any] = field(default_factory=dict)
    predictions: list[LockedPrediction] = field(default_factory=list)
    history: CommandHistory = field(default_factory=CommandHistory)

    @property
    def is_terminal(self) -> bool:
        return self.status != SessionStatus.ACTIVE or self.phase == SessionPhase.COMPLETE

    def find_prediction(self, prediction_id: str) -> LockedPrediction | None:
        for prediction in self.predictions:
            if prediction.id == prediction_id:
                return prediction
        return None

    def find_prediction_by_key(self, hypothesis_id: str, prediction_type: str, index: int) -> LockedPrediction | None:
        for prediction in self.predictions:
            if prediction.key == (hypothesis_id, prediction_type, index):
                return prediction
        return None

    def scalar_state(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "max_phase_reached": self.max_phase_reached.value,
            "status": self.status.value,
            "hypothesis": self.hypothesis,
            "confidence": self.confidence,
            "completed_at": isoformat(self.completed_at),
            "abandoned_at": isoformat(self.abandoned_at),
            "result": copy.deepcopy(self.result),
            "updated_at": isoformat(self.updated_at),
        }

    def state_dict(self) -> dict[str, Any]:
        """Serialized session state without command history."""
        return {
            "id": self.id,
            "domain": self.domain,
            "created_at": isoformat(self.created_at),
            **self.scalar_state(),
            "content": copy.deepcopy(self.content),
            "selections": copy.deepcopy(self.selections),
            "predictions": [p.to_dict() for p in self.predictions],
            "artifact": self.artifact.to_dict(),
        }

    def to_dict(self) -> dict[str, Any]:
        return {**self.state_dict(), "history": self.history.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        history = data.get("history")
        return cls(
            id=data["id"],
            created_at=parse_datetime(data["created_at"]),
            updated_at=parse_datetime(data.get("updated_at") or data["created_at"]),
            artifact=Artifact.from_dict(data["artifact"]),
            phase=SessionPhase(data.get("phase", SessionPhase.INTAKE.value)),
            status=SessionStatus(data.get("status", SessionStatus.ACTIVE.value)),
            hypothesis=data.get("hypothesis", ""),
            confidence=int(data.get("confidence", DEFAULT_CONFIDENCE)),
            domain=data.get("domain"),
            max_phase_reached=SessionPhase(
                data.get("max_phase_reached", data.get("phase", SessionPhase.INTAKE.value))
            ),
            completed_at=parse_datetime(data.get("completed_at")),
            abandoned_at=parse_datetime(data.get("abandoned_at")),
            result=copy.deepcopy(data.get("result")),
            content=copy.deepcopy(data.get("content") or {}),
            selections=copy.deepcopy(data.get("selections") or {}),
            predictions=[LockedPrediction.from_dict(p) for p in data.get("predictions", [])],
            history=CommandHistory.from_dict(history) if history else CommandHistory(),
        )

    def summary(self) -> SessionSummary:
        return SessionSummary(
            id=self.id,
            phase=self.phase,
            status=self.status,
            hypothesis=self.hypothesis,
            confidence=self.confidence,
            domain=self.domain,
            created_at=self.created_at,
            updated_at=self.updated_at,
            prediction_count=len(self.predictions),
            artifact_version=self.artifact.metadata.version,
        )


@dataclass(frozen=True)
class SessionSummary:
    id: str
    phase: SessionPhase
    status: SessionStatus
    hypothesis: str
    confidence: int
    domain: str | None
    created_at: datetime
    updated_at: datetime
    prediction_count: int = 0
    artifact_version: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "phase": self.phase.value,
            "status": self.status.value,
            "hypothesis": self.hypothesis,
            "confidence": self.confidence,
            "domain": self.domain,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
            "prediction_count": self.prediction_count,
            "artifact_version": self.artifact_version,
        }


def sort_by_progress(sessions: Iterable[Any]) -> list[Any]:
    """
    Order sessions (or summaries) by phase index descending, then by
    updated_at descending.
    """
    return sorted(sessions, key=lambda s: (phase_index(s.phase), s.updated_at), reverse=True)
