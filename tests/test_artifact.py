"""
Tests for artifact merge, validation, lint and Markdown rendering.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from brenner.artifact.merge import merge_contribution
from brenner.artifact.model import Artifact, create_empty_artifact
from brenner.artifact.render import render_artifact_markdown
from brenner.artifact.validation import Severity, lint_artifact, validate_artifact

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def empty() -> Artifact:
    return create_empty_artifact("S1", timestamp=T0)


def _rules(violations) -> list[str]:
    return [v.rule_id for v in violations]


# =============================================================================
# Merge
# =============================================================================


def test_empty_contribution_still_bumps_version(empty: Artifact):
    result = merge_contribution(empty, {}, "agent:codex", timestamp=T0 + timedelta(minutes=1))
    assert result.version == 1
    assert result.applied == 0
    assert result.artifact.metadata.status == "draft"
    assert [c.agent for c in result.artifact.metadata.contributors] == ["agent:codex"]


def test_merge_does_not_mutate_input(empty: Artifact, contribution):
    result = merge_contribution(empty, contribution, "agent:codex", timestamp=T0)
    assert empty.metadata.version == 0
    assert empty.hypotheses == []
    assert result.artifact.metadata.status == "active"
    assert result.applied == 2


def test_same_id_is_replaced_wholesale(empty: Artifact):
    first = merge_contribution(
        empty,
        {"hypothesis_slate": [{"id": "H1", "name": "Direct", "claim": "X raises Y", "mechanism": "pathway"}]},
        "agent:codex",
        timestamp=T0,
    )
    replacement = {"id": "H1", "name": "Indirect", "claim": "X raises Z which raises Y"}
    second = merge_contribution(
        first.artifact, {"hypothesis_slate": [replacement]}, "agent:claude", timestamp=T0 + timedelta(hours=1)
    )

    assert second.version == 2
    assert second.artifact.hypotheses == [replacement]


def test_new_ids_append_in_order(empty: Artifact):
    result = merge_contribution(
        empty,
        {"hypothesis_slate": [{"id": "H2", "name": "b"}, {"id": "H1", "name": "a"}]},
        "agent:codex",
        timestamp=T0,
    )
    assert [h["id"] for h in result.artifact.hypotheses] == ["H2", "H1"]


def test_research_thread_replaced_as_whole(empty: Artifact):
    first = merge_contribution(
        empty,
        {"research_thread": {"id": "RT", "statement": "Why does Y rise?", "context": "lab"}},
        "agent:codex",
        timestamp=T0,
    )
    second = merge_contribution(
        first.artifact, {"research_thread": {"id": "RT", "statement": "Why does Y fall?"}}, "agent:codex", timestamp=T0
    )
    assert second.artifact.research_thread == {"id": "RT", "statement": "Why does Y fall?"}


def test_merge_warnings(empty: Artifact):
    contribution = {
        "hypothesis_slate": [{"name": "no id"}, {"id": "H1", "name": "ok"}],
        "lab_notebook": [{"id": "N1"}],
        "research_thread": {"statement": "missing id"},
    }
    result = merge_contribution(empty, contribution, "agent:codex", timestamp=T0)

    codes = sorted(w.code for w in result.warnings)
    assert codes == ["MISSING_ID", "MISSING_ID", "UNKNOWN_SECTION"]
    assert result.applied == 1
    assert result.skipped == 3
    assert result.artifact.research_thread is None


def test_slate_limit_warns_but_merges(empty: Artifact):
    slate = [{"id": f"H{i}", "name": f"h{i}"} for i in range(1, 8)]
    result = merge_contribution(empty, {"hypothesis_slate": slate}, "agent:codex", timestamp=T0)

    assert len(result.artifact.hypotheses) == 7
    assert [w.code for w in result.warnings] == ["SECTION_LIMIT_EXCEEDED"]


def test_contributor_upsert_keeps_first_timestamp(empty: Artifact):
    first = merge_contribution(empty, {}, "agent:codex", timestamp=T0, agent_info={"program": "codex-cli", "model": "m1"})
    later = T0 + timedelta(hours=2)
    second = merge_contribution(first.artifact, {}, "agent:codex", timestamp=later)

    [contributor] = second.artifact.metadata.contributors
    assert contributor.first_contributed_at == T0
    assert contributor.contributed_at == later
    assert contributor.program == "codex-cli"
    assert contributor.model == "m1"
    assert second.artifact.metadata.updated_at == later


def test_blank_agent_rejected(empty: Artifact):
    with pytest.raises(ValueError, match="agent"):
        merge_contribution(empty, {}, "  ", timestamp=T0)


def test_merge_scenario_through_machine(machine, contribution):
    machine.merge_contribution(contribution, "agent:codex")
    machine.merge_contribution({"hypothesis_slate": [{"id": "H1", "name": "Revised"}]}, "agent:claude")

    artifact = machine.session.artifact
    assert artifact.metadata.version == 2
    assert [h["name"] for h in artifact.hypotheses] == ["Revised"]
    assert machine.last_merge.applied == 1
    assert [c.agent for c in artifact.metadata.contributors] == ["agent:codex", "agent:claude"]


def test_artifact_round_trips_through_dict(empty: Artifact, contribution):
    merged = merge_contribution(empty, contribution, "agent:codex", timestamp=T0).artifact
    assert Artifact.from_dict(merged.to_dict()).to_dict() == merged.to_dict()


# =============================================================================
# Validation
# =============================================================================


def test_valid_artifact_has_no_violations(empty: Artifact, contribution):
    merged = merge_contribution(empty, contribution, "agent:codex", timestamp=T0).artifact
    assert validate_artifact(merged) == []


def test_single_outcome_test_is_a_violation(empty: Artifact):
    merged = merge_contribution(
        empty,
        {"discriminative_tests": [{"id": "T1", "name": "weak", "expected_outcomes": {"H1": "Y rises"}}]},
        "agent:codex",
        timestamp=T0,
    ).artifact

    [violation] = validate_artifact(merged)
    assert violation.rule_id == "artifact.test.expected_outcomes"
    assert violation.item_id == "T1"
    assert violation.severity == Severity.ENFORCE


def test_duplicate_and_missing_ids(empty: Artifact):
    empty.sections["hypothesis_slate"] = [{"id": "H1"}, {"id": "H1"}, {"name": "anonymous"}]
    assert sorted(_rules(validate_artifact(empty))) == ["artifact.item.duplicate_id", "artifact.item.missing_id"]


def test_research_thread_shape(empty: Artifact):
    empty.research_thread = [{"id": "RT"}]
    assert _rules(validate_artifact(empty)) == ["artifact.research_thread.shape"]

    empty.research_thread = {"statement": "no id"}
    assert _rules(validate_artifact(empty)) == ["artifact.item.missing_id"]


def test_lint_on_empty_artifact(empty: Artifact):
    hints = lint_artifact(empty)
    rules = _rules(hints)
    assert "artifact.slate.third_alternative" in rules
    assert "artifact.assumptions.scale_check" in rules
    assert rules.count("artifact.section.below_minimum") == 5
    assert all(h.severity == Severity.WARN for h in hints)


def test_lint_ignores_killed_items(empty: Artifact):
    empty.sections["hypothesis_slate"] = [
        {"id": "H1", "third_alternative": True, "killed": True},
        {"id": "H2", "third_alternative": True},
    ]
    empty.sections["assumption_ledger"] = [{"id": "A1", "scale_check": True, "killed": True}]

    rules = _rules(lint_artifact(empty))
    assert "artifact.slate.third_alternative" not in rules
    assert "artifact.assumptions.scale_check" in rules


# =============================================================================
# Rendering
# =============================================================================


def test_render_markdown(empty: Artifact, contribution):
    contribution["hypothesis_slate"].append(
        {"id": "H2", "name": "Both wrong", "claim": "Z drives both", "third_alternative": True, "killed": True,
         "kill_reason": "T1 ruled it out"}
    )
    merged = merge_contribution(empty, contribution, "agent:codex", timestamp=T0).artifact
    text = render_artifact_markdown(merged)

    assert text.startswith("---\n")
    assert "session_id: S1" in text
    assert "# Brenner Protocol Artifact: S1" in text
    assert "### H1: Direct effect" in text
    assert "### ~~H2: Both wrong (Third Alternative)~~" in text
    assert "**Kill reason**: T1 ruled it out" in text
    assert "| ID | Observation/Condition | H1 | H2 |" in text
    assert "- H1: Y stays flat" in text


def test_render_without_front_matter(empty: Artifact):
    text = render_artifact_markdown(empty, front_matter=False)
    assert text.startswith("# Brenner Protocol Artifact: S1")
    assert text.endswith("\n")
