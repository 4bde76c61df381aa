"""
Artifact validation rules with severity levels.

validate_artifact() runs the structural rules only; it never raises, callers
decide whether violations block an action. lint_artifact() runs the protocol
hints (minimum section sizes, third alternative, scale check) that are
reported but never enforced.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .model import LIST_SECTIONS, RESEARCH_THREAD, Artifact


class Severity(Enum):
    """Validation severity levels."""

    WARN = "warn"  # Report only
    ENFORCE = "enforce"  # Structural, blocks whatever the caller gates on it


# ============================================================================
# RULE REGISTRY
# ============================================================================

ARTIFACT_RULES: dict[str, dict[str, Any]] = {
    # Structural
    "artifact.research_thread.shape": {
        "description": "research_thread must be null or exactly one object",
        "severity": Severity.ENFORCE,
    },
    "artifact.item.missing_id": {
        "description": "Every section item must have a non-empty string id",
        "severity": Severity.ENFORCE,
    },
    "artifact.item.duplicate_id": {
        "description": "Item ids must be unique within a section",
        "severity": Severity.ENFORCE,
    },
    "artifact.test.expected_outcomes": {
        "description": "Discriminative test needs expected_outcomes with at least 2 keys",
        "severity": Severity.ENFORCE,
        "rationale": "A test that predicts one outcome cannot discriminate",
    },
    # Protocol hints
    "artifact.slate.third_alternative": {
        "description": "Hypothesis slate should flag exactly one third alternative",
        "severity": Severity.WARN,
    },
    "artifact.section.below_minimum": {
        "description": "Section has fewer active items than the protocol minimum",
        "severity": Severity.WARN,
    },
    "artifact.assumptions.scale_check": {
        "description": "Assumption ledger has no active scale/physics check",
        "severity": Severity.WARN,
    },
}

SECTION_MINIMUMS: dict[str, int] = {
    "hypothesis_slate": 3,
    "predictions_table": 3,
    "discriminative_tests": 2,
    "assumption_ledger": 3,
    "adversarial_critique": 2,
}


@dataclass(frozen=True)
class Violation:
    rule_id: str
    message: str
    section: str | None = None
    item_id: str | None = None

    @property
    def severity(self) -> Severity:
        return ARTIFACT_RULES[self.rule_id]["severity"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "message": self.message,
            "section": self.section,
            "item_id": self.item_id,
        }


def _is_active(item: Any) -> bool:
    return isinstance(item, dict) and item.get("killed") is not True


def validate_artifact(artifact: Artifact) -> list[Violation]:
    violations: list[Violation] = []

    rt = artifact.research_thread
    if rt is not None:
        if not isinstance(rt, dict):
            violations.append(
                Violation("artifact.research_thread.shape", "research_thread must be a single object", RESEARCH_THREAD)
            )
        elif not (isinstance(rt.get("id"), str) and rt["id"].strip()):
            violations.append(Violation("artifact.item.missing_id", "research_thread has no id", RESEARCH_THREAD))

    for section in LIST_SECTIONS:
        seen: set[str] = set()
        for i, item in enumerate(artifact.sections.get(section, [])):
            item_id = item.get("id") if isinstance(item, dict) else None
            if not (isinstance(item_id, str) and item_id.strip()):
                violations.append(
                    Violation("artifact.item.missing_id", f"{section}[{i}] has no id", section)
                )
                continue
            if item_id in seen:
                violations.append(
                    Violation("artifact.item.duplicate_id", f"{section} repeats id {item_id}", section, item_id)
                )
            seen.add(item_id)

            if section == "discriminative_tests":
                outcomes = item.get("expected_outcomes")
                if not isinstance(outcomes, dict) or len(outcomes) < 2:
                    count = len(outcomes) if isinstance(outcomes, dict) else 0
                    violations.append(
                        Violation(
                            "artifact.test.expected_outcomes",
                            f"{item_id} has {count} expected outcome(s); at least 2 required",
                            section,
                            item_id,
                        )
                    )

    return violations


def lint_artifact(artifact: Artifact) -> list[Violation]:
    hints: list[Violation] = []

    active_hypotheses = [h for h in artifact.sections.get("hypothesis_slate", []) if _is_active(h)]
    third = [h for h in active_hypotheses if h.get("third_alternative") is True]
    if len(third) != 1:
        hints.append(
            Violation(
                "artifact.slate.third_alternative",
                f"{len(third)} active hypotheses flagged third_alternative (expected 1)",
                "hypothesis_slate",
            )
        )

    for section, minimum in SECTION_MINIMUMS.items():
        active = [i for i in artifact.sections.get(section, []) if _is_active(i)]
        if len(active) < minimum:
            hints.append(
                Violation(
                    "artifact.section.below_minimum",
                    f"{section} has {len(active)} active items (minimum {minimum})",
                    section,
                )
            )

    assumptions = [a for a in artifact.sections.get("assumption_ledger", []) if _is_active(a)]
    if not any(a.get("scale_check") is True for a in assumptions):
        hints.append(
            Violation("artifact.assumptions.scale_check", "No active scale/physics check assumption", "assumption_ledger")
        )

    return hints
