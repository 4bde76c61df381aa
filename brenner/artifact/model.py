"""
Canonical research artifact for one session.

Section items are plain JSON objects keyed by a stable `id`. The engine does
not interpret item fields beyond `id` (and `expected_outcomes` on tests, for
structural validation); item content is owned by whoever contributes it.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from ..util import parse_datetime

ArtifactStatus = Literal["draft", "active", "completed"]
ARTIFACT_STATUSES = frozenset({"draft", "active", "completed"})

RESEARCH_THREAD = "research_thread"

LIST_SECTIONS = (
    "hypothesis_slate",
    "predictions_table",
    "discriminative_tests",
    "assumption_ledger",
    "anomaly_register",
    "adversarial_critique",
)

SECTION_NAMES = (RESEARCH_THREAD, *LIST_SECTIONS)


@dataclass
class Contributor:
    agent: str
    first_contributed_at: datetime
    contributed_at: datetime
    program: str | None = None
    model: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "agent": self.agent,
            "first_contributed_at": self.first_contributed_at.isoformat(),
            "contributed_at": self.contributed_at.isoformat(),
        }
        if self.program is not None:
            result["program"] = self.program
        if self.model is not None:
            result["model"] = self.model
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Contributor:
        latest = datetime.fromisoformat(data["contributed_at"])
        first = parse_datetime(data.get("first_contributed_at")) or latest
        return cls(
            agent=data["agent"],
            first_contributed_at=first,
            contributed_at=latest,
            program=data.get("program"),
            model=data.get("model"),
        )


@dataclass
class ArtifactMetadata:
    session_id: str
    created_at: datetime
    updated_at: datetime
    version: int = 0
    status: str = "draft"
    contributors: list[Contributor] = field(default_factory=list)

    def contributor(self, agent: str) -> Contributor | None:
        for c in self.contributors:
            if c.agent == agent:
                return c
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "version": self.version,
            "status": self.status,
            "contributors": [c.to_dict() for c in self.contributors],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ArtifactMetadata:
        return cls(
            session_id=data["session_id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            version=int(data.get("version", 0)),
            status=data.get("status", "draft"),
            contributors=[Contributor.from_dict(c) for c in data.get("contributors", [])],
        )


@dataclass
class Artifact:
    metadata: ArtifactMetadata
    research_thread: dict[str, Any] | None = None
    sections: dict[str, list[dict[str, Any]]] = field(
        default_factory=lambda: {name: [] for name in LIST_SECTIONS}
    )

    def items(self, section: str) -> list[dict[str, Any]]:
        if section == RESEARCH_THREAD:
            return [self.research_thread] if self.research_thread is not None else []
        return self.sections.setdefault(section, [])

    def find(self, section: str, item_id: str) -> dict[str, Any] | None:
        for item in self.items(section):
            if isinstance(item, dict) and item.get("id") == item_id:
                return item
        return None

    @property
    def hypotheses(self) -> list[dict[str, Any]]:
        return self.items("hypothesis_slate")

    @property
    def tests(self) -> list[dict[str, Any]]:
        return self.items("discriminative_tests")

    def copy(self) -> Artifact:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        sections: dict[str, Any] = {RESEARCH_THREAD: copy.deepcopy(self.research_thread)}
        for name in LIST_SECTIONS:
            sections[name] = copy.deepcopy(self.sections.get(name, []))
        return {"metadata": self.metadata.to_dict(), "sections": sections}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Artifact:
        raw_sections = data.get("sections", {})
        raw_sections = raw_sections if isinstance(raw_sections, dict) else {}
        sections: dict[str, list[dict[str, Any]]] = {}
        for name in LIST_SECTIONS:
            value = raw_sections.get(name, [])
            sections[name] = copy.deepcopy(value) if isinstance(value, list) else []
        return cls(
            metadata=ArtifactMetadata.from_dict(data["metadata"]),
            research_thread=copy.deepcopy(raw_sections.get(RESEARCH_THREAD)),
            sections=sections,
        )


def create_empty_artifact(session_id: str, *, timestamp: datetime) -> Artifact:
    return Artifact(
        metadata=ArtifactMetadata(session_id=session_id, created_at=timestamp, updated_at=timestamp),
    )
