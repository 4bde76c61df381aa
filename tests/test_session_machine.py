"""
Tests for the session state machine.

Covers phase gates, navigation (advance, retreat, go_to_step), completion and
abandonment, and the free-form content operations.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from brenner.artifact.model import create_empty_artifact
from brenner.config import EnginePolicy
from brenner.errors import InvalidTransitionError, PhaseGateError
from brenner.history.commands import CommandType
from brenner.session.machine import SessionMachine, create_session
from brenner.session.model import Session, sort_by_progress
from brenner.session.phases import (
    PHASE_ORDER,
    SessionPhase,
    SessionStatus,
    next_phase,
    phase_index,
    previous_phase,
)
from brenner.util import SystemClock


# =============================================================================
# Phase order
# =============================================================================


def test_phase_order_is_total():
    assert PHASE_ORDER[0] == SessionPhase.INTAKE
    assert PHASE_ORDER[-1] == SessionPhase.COMPLETE
    assert len(PHASE_ORDER) == 11
    assert [phase_index(p) for p in PHASE_ORDER] == list(range(11))


def test_next_and_previous_phase_bounds():
    assert next_phase(SessionPhase.INTAKE) == SessionPhase.SHARPENING
    assert next_phase(SessionPhase.COMPLETE) is None
    assert previous_phase(SessionPhase.INTAKE) is None
    assert previous_phase(SessionPhase.SHARPENING) == SessionPhase.INTAKE


# =============================================================================
# Creation
# =============================================================================


def test_create_session_defaults(machine: SessionMachine):
    session = machine.session
    assert session.id == "SESSION-0001"
    assert session.phase == SessionPhase.INTAKE
    assert session.status == SessionStatus.ACTIVE
    assert session.confidence == 50
    assert session.hypothesis == ""
    assert session.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert session.artifact.metadata.version == 0
    assert session.artifact.metadata.status == "draft"
    assert not machine.can_undo


def test_create_session_rejects_unknown_domain(clock, ids):
    with pytest.raises(ValueError, match="Unknown domain"):
        create_session("Does X cause Y?", domain="astrology", clock=clock, ids=ids)


def test_create_session_rejects_out_of_range_confidence(clock, ids):
    with pytest.raises(ValueError):
        create_session(confidence=101, clock=clock, ids=ids)


def test_create_session_with_domain_and_confidence(clock, ids):
    m = create_session("Does X cause Y?", domain="epidemiology", confidence=70, clock=clock, ids=ids)
    assert m.session.domain == "epidemiology"
    assert m.session.confidence == 70


# =============================================================================
# Gates
# =============================================================================


def test_empty_hypothesis_blocks_advance_until_set(machine: SessionMachine):
    with pytest.raises(PhaseGateError) as exc:
        machine.advance()
    assert exc.value.phase == "intake"
    assert machine.session.phase == SessionPhase.INTAKE
    assert not machine.can_undo

    machine.set_content("hypothesis", "Does X cause Y?")
    machine.advance()

    assert machine.session.phase == SessionPhase.SHARPENING
    assert machine.session.max_phase_reached == SessionPhase.SHARPENING


def test_whitespace_hypothesis_does_not_pass_intake(machine: SessionMachine):
    machine.set_hypothesis("   ")
    assert machine.gate_failure() == "a non-blank hypothesis is required"
    assert not machine.can_advance()


def test_sharpening_requires_minimum_length(clock, ids):
    m = create_session(clock=clock, ids=ids, policy=EnginePolicy(min_hypothesis_length=30))
    m.set_hypothesis("Does X cause Y?")
    m.advance()
    with pytest.raises(PhaseGateError, match="at least 30 characters"):
        m.advance()


def test_synthesis_requires_slate_and_locked_prediction(machine, contribution, advance_to):
    machine.set_hypothesis("Does X cause Y in adults?")
    advance_to(machine, SessionPhase.SYNTHESIS)

    with pytest.raises(PhaseGateError, match="hypothesis in the artifact slate"):
        machine.advance()

    machine.merge_contribution(contribution, "agent:codex")
    with pytest.raises(PhaseGateError, match="locked prediction"):
        machine.advance()

    machine.draft_prediction("H1", "if_true", 0, "Y rises")
    with pytest.raises(PhaseGateError, match="locked prediction"):
        machine.advance()

    machine.lock_prediction("H1", "if_true", 0)
    machine.advance()
    assert machine.session.phase == SessionPhase.EVIDENCE_GATHERING


def test_synthesis_without_lock_requirement(clock, ids, contribution, advance_to):
    m = create_session(
        "Does X cause Y in adults?",
        clock=clock,
        ids=ids,
        policy=EnginePolicy(require_locked_predictions=False),
    )
    m.merge_contribution(contribution, "agent:codex")
    advance_to(m, SessionPhase.EVIDENCE_GATHERING)
    assert m.session.phase == SessionPhase.EVIDENCE_GATHERING


def test_operator_phases_have_no_gate(ready_machine, advance_to):
    advance_to(ready_machine, SessionPhase.AGENT_DISPATCH)
    for phase in (
        SessionPhase.LEVEL_SPLIT,
        SessionPhase.EXCLUSION_TEST,
        SessionPhase.OBJECT_TRANSPOSE,
        SessionPhase.SCALE_CHECK,
        SessionPhase.AGENT_DISPATCH,
    ):
        assert ready_machine.gate_failure(phase) is None


# =============================================================================
# Navigation
# =============================================================================


def test_retreat_at_intake_is_a_noop(machine: SessionMachine):
    assert machine.retreat() is None
    assert not machine.can_undo


def test_retreat_keeps_max_phase_reached(ready_machine, advance_to):
    advance_to(ready_machine, SessionPhase.LEVEL_SPLIT)
    command = ready_machine.retreat()

    assert command.type == CommandType.PHASE_RETREAT
    assert ready_machine.session.phase == SessionPhase.SHARPENING
    assert ready_machine.session.max_phase_reached == SessionPhase.LEVEL_SPLIT


def test_go_to_step_within_reached_phases(ready_machine, advance_to):
    advance_to(ready_machine, SessionPhase.EXCLUSION_TEST)

    command = ready_machine.go_to_step("intake")
    assert command.type == CommandType.PHASE_JUMP
    assert ready_machine.session.phase == SessionPhase.INTAKE

    ready_machine.go_to_step(SessionPhase.EXCLUSION_TEST)
    assert ready_machine.session.phase == SessionPhase.EXCLUSION_TEST
    assert ready_machine.go_to_step(SessionPhase.EXCLUSION_TEST) is None


def test_go_to_step_rejects_unreached_phase(ready_machine):
    with pytest.raises(InvalidTransitionError, match="has not been reached"):
        ready_machine.go_to_step(SessionPhase.SYNTHESIS)


def test_go_to_step_rejects_complete(ready_machine):
    with pytest.raises(InvalidTransitionError):
        ready_machine.go_to_step("complete")


def test_go_to_step_rejects_unknown_phase(ready_machine):
    with pytest.raises(ValueError):
        ready_machine.go_to_step("nowhere")


# =============================================================================
# Completion and abandonment
# =============================================================================


def test_complete_from_synthesis(ready_machine, advance_to):
    advance_to(ready_machine, SessionPhase.SYNTHESIS)
    command = ready_machine.complete({"verdict": "supported"})

    session = ready_machine.session
    assert command.type == CommandType.SESSION_COMPLETE
    assert session.status == SessionStatus.COMPLETED
    assert session.phase == SessionPhase.COMPLETE
    assert session.result == {"verdict": "supported"}
    assert session.completed_at is not None
    assert session.artifact.metadata.status == "completed"
    assert session.is_terminal


def test_advance_from_revision_completes(ready_machine, advance_to):
    advance_to(ready_machine, SessionPhase.REVISION)
    command = ready_machine.advance()

    assert command.type == CommandType.SESSION_COMPLETE
    assert ready_machine.session.status == SessionStatus.COMPLETED
    assert ready_machine.session.phase == SessionPhase.COMPLETE


def test_complete_rejected_outside_completion_phases(ready_machine, advance_to):
    advance_to(ready_machine, SessionPhase.LEVEL_SPLIT)
    with pytest.raises(InvalidTransitionError):
        ready_machine.complete()


def test_complete_requires_discriminative_test(machine, advance_to):
    machine.set_hypothesis("Does X cause Y in adults?")
    machine.merge_contribution({"hypothesis_slate": [{"id": "H1", "name": "Direct"}]}, "agent:codex")
    machine.lock_prediction("H1", "if_true", 0, "Y rises")
    advance_to(machine, SessionPhase.SYNTHESIS)

    with pytest.raises(PhaseGateError, match="discriminative test"):
        machine.complete()


def test_complete_blocked_by_draft_prediction(ready_machine, advance_to):
    advance_to(ready_machine, SessionPhase.SYNTHESIS)
    ready_machine.draft_prediction("H1", "if_false", 0, "Y falls")

    with pytest.raises(PhaseGateError, match="draft predictions must be locked"):
        ready_machine.complete()
    assert ready_machine.session.status == SessionStatus.ACTIVE


def test_completed_session_rejects_transitions(ready_machine, advance_to):
    advance_to(ready_machine, SessionPhase.SYNTHESIS)
    ready_machine.complete()

    with pytest.raises(InvalidTransitionError, match="complete"):
        ready_machine.advance()
    with pytest.raises(InvalidTransitionError):
        ready_machine.retreat()
    with pytest.raises(InvalidTransitionError):
        ready_machine.abandon()


def test_abandon_then_undo_reactivates(ready_machine):
    ready_machine.abandon()
    assert ready_machine.session.status == SessionStatus.ABANDONED
    assert ready_machine.session.abandoned_at is not None
    with pytest.raises(InvalidTransitionError, match="abandoned"):
        ready_machine.advance()

    ready_machine.undo()
    assert ready_machine.session.status == SessionStatus.ACTIVE
    assert ready_machine.session.abandoned_at is None
    ready_machine.advance()


# =============================================================================
# Content
# =============================================================================


def test_set_content_routes_hypothesis_and_confidence(machine: SessionMachine):
    hypothesis_cmd = machine.set_content("hypothesis", "Does X cause Y?")
    confidence_cmd = machine.set_content("confidence", 80)

    assert hypothesis_cmd.type == CommandType.HYPOTHESIS_SET
    assert confidence_cmd.type == CommandType.CONFIDENCE_SET
    assert machine.session.hypothesis == "Does X cause Y?"
    assert machine.session.confidence == 80
    assert "hypothesis" not in machine.session.content


def test_set_content_and_selection(machine: SessionMachine):
    machine.set_content("level_split_notes", {"levels": ["cell", "organism"]})
    machine.set_selection("chosen_design", "rct")

    assert machine.session.content == {"level_split_notes": {"levels": ["cell", "organism"]}}
    assert machine.session.selections == {"chosen_design": "rct"}


def test_set_content_rejects_non_json_value(machine: SessionMachine):
    with pytest.raises(ValueError):
        machine.set_content("notes", object())
    assert not machine.can_undo


@pytest.mark.parametrize("value", [-1, 101, True, "50", 50.5])
def test_set_confidence_rejects_invalid(machine: SessionMachine, value):
    with pytest.raises(ValueError, match="confidence"):
        machine.set_confidence(value)
    assert machine.session.confidence == 50


@pytest.mark.parametrize("value", [0, 100])
def test_set_confidence_accepts_bounds(machine: SessionMachine, value):
    machine.set_confidence(value)
    assert machine.session.confidence == value


def test_set_hypothesis_rejects_non_string(machine: SessionMachine):
    with pytest.raises(ValueError):
        machine.set_hypothesis(42)


def test_commands_advance_updated_at(machine: SessionMachine):
    before = machine.session.updated_at
    machine.set_hypothesis("Does X cause Y?")
    assert machine.session.updated_at > before


# =============================================================================
# Ordering
# =============================================================================


def _session(session_id: str, phase: SessionPhase, hour: int) -> Session:
    ts = datetime(2024, 1, 1, hour, tzinfo=timezone.utc)
    return Session(
        id=session_id,
        created_at=ts,
        updated_at=ts,
        artifact=create_empty_artifact(session_id, timestamp=ts),
        phase=phase,
    )


def test_sort_by_progress_phase_then_recency():
    sessions = [
        _session("a", SessionPhase.INTAKE, 9),
        _session("b", SessionPhase.SYNTHESIS, 1),
        _session("c", SessionPhase.SYNTHESIS, 5),
        _session("d", SessionPhase.LEVEL_SPLIT, 12),
    ]
    ordered = sort_by_progress(sessions)
    assert [s.id for s in ordered] == ["c", "b", "d", "a"]
    assert [s.id for s in sort_by_progress(s.summary() for s in sessions)] == ["c", "b", "d", "a"]


def test_wall_clock_never_precedes_stored_timestamp():
    future = datetime(2999, 1, 1, tzinfo=timezone.utc)
    stored = _session("f", SessionPhase.INTAKE, 0)
    stored.updated_at = future

    reloaded = SessionMachine(Session.from_dict(stored.to_dict()))
    command = reloaded.set_confidence(70)

    assert command.timestamp == future
    assert reloaded.session.updated_at == future


def test_system_clock_floor():
    floor = datetime(2999, 1, 1, tzinfo=timezone.utc)
    clock = SystemClock(floor=floor)
    assert clock.now() == floor
    assert SystemClock().now() < floor
