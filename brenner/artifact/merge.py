"""
Deterministic merge of agent contributions into a session artifact.

Rules:
- Items are keyed by `id`. A new id is appended; an existing id is replaced
  wholesale (last writer wins). Fields are never merged piecemeal.
- research_thread is a single object and is replaced as a whole.
- metadata.version increases by exactly 1 per merge call, whatever the
  contribution contains.
- Contributors are upserted: first_contributed_at is kept, contributed_at
  moves forward.

The input artifact is never mutated; a merged copy is returned.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from .model import LIST_SECTIONS, RESEARCH_THREAD, Artifact, Contributor

logger = logging.getLogger(__name__)

SECTION_LIMITS: dict[str, int] = {
    "hypothesis_slate": 6,
}


@dataclass(frozen=True)
class MergeWarning:
    code: str
    message: str
    section: str | None = None
    item_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "section": self.section, "item_id": self.item_id}


@dataclass
class MergeResult:
    artifact: Artifact
    applied: int = 0
    skipped: int = 0
    warnings: list[MergeWarning] = field(default_factory=list)

    @property
    def version(self) -> int:
        return self.artifact.metadata.version


def _item_id(item: Any) -> str | None:
    if not isinstance(item, dict):
        return None
    item_id = item.get("id")
    if isinstance(item_id, str) and item_id.strip():
        return item_id
    return None


def _upsert_item(items: list[dict[str, Any]], item: dict[str, Any]) -> bool:
    """Replace the item with the same id, or append. Returns True if replaced."""
    item_id = item["id"]
    for i, existing in enumerate(items):
        if isinstance(existing, dict) and existing.get("id") == item_id:
            items[i] = copy.deepcopy(item)
            return True
    items.append(copy.deepcopy(item))
    return False


def _upsert_contributor(artifact: Artifact, agent: str, timestamp: datetime, agent_info: Mapping[str, Any]) -> None:
    existing = artifact.metadata.contributor(agent)
    if existing is None:
        artifact.metadata.contributors.append(
            Contributor(
                agent=agent,
                first_contributed_at=timestamp,
                contributed_at=timestamp,
                program=agent_info.get("program"),
                model=agent_info.get("model"),
            )
        )
        return
    if timestamp > existing.contributed_at:
        existing.contributed_at = timestamp


def merge_contribution(
    artifact: Artifact,
    contribution: Mapping[str, Any],
    agent: str,
    *,
    timestamp: datetime,
    agent_info: Mapping[str, Any] | None = None,
) -> MergeResult:
    """
    Merge one agent's contribution into a copy of `artifact`.

    Args:
        artifact: Base artifact (left untouched)
        contribution: Mapping of section name to a list of items, or to a
            single object for research_thread
        agent: Contributing agent identity (contributor key)
        timestamp: Merge time (updated_at, contributor timestamps)
        agent_info: Optional program/model details for a new contributor

    Returns:
        MergeResult with the merged artifact, counts and warnings
    """
    if not agent or not agent.strip():
        raise ValueError("agent is required")

    merged = artifact.copy()
    result = MergeResult(artifact=merged)

    for section, payload in contribution.items():
        if section == RESEARCH_THREAD:
            if payload is None:
                continue
            if _item_id(payload) is None:
                result.skipped += 1
                result.warnings.append(
                    MergeWarning("MISSING_ID", "research_thread must be an object with an id", section)
                )
                continue
            merged.research_thread = copy.deepcopy(dict(payload))
            result.applied += 1
            continue

        if section not in LIST_SECTIONS:
            skipped = len(payload) if isinstance(payload, list) else 1
            result.skipped += skipped
            result.warnings.append(MergeWarning("UNKNOWN_SECTION", f"Unknown section: {section}", section))
            continue

        items = payload if isinstance(payload, list) else [payload]
        target = merged.items(section)
        for item in items:
            item_id = _item_id(item)
            if item_id is None:
                result.skipped += 1
                result.warnings.append(MergeWarning("MISSING_ID", f"{section} item without an id skipped", section))
                continue
            replaced = _upsert_item(target, item)
            result.applied += 1
            if replaced:
                logger.debug("Replaced %s/%s (agent=%s)", section, item_id, agent)

        limit = SECTION_LIMITS.get(section)
        if limit is not None and len(target) > limit:
            result.warnings.append(
                MergeWarning(
                    "SECTION_LIMIT_EXCEEDED",
                    f"{section} has {len(target)} items (limit {limit})",
                    section,
                )
            )

    metadata = merged.metadata
    metadata.version += 1
    if timestamp > metadata.updated_at:
        metadata.updated_at = timestamp
    if metadata.status == "draft" and result.applied > 0:
        metadata.status = "active"
    _upsert_contributor(merged, agent, timestamp, agent_info or {})

    logger.debug(
        "Merged contribution from %s into %s: v%d applied=%d skipped=%d",
        agent,
        metadata.session_id,
        metadata.version,
        result.applied,
        result.skipped,
    )
    return result
