"""Tests for prediction operations driven through the session machine."""

from __future__ import annotations

import dataclasses

import pytest

from brenner.config import EnginePolicy
from brenner.errors import EmptyTextError, InvalidStateError
from brenner.history.commands import CommandType
from brenner.session.machine import SessionMachine, create_session
from brenner.session.phases import SessionPhase


def test_draft_then_lock_keeps_id(machine: SessionMachine):
    machine.draft_prediction("H1", "if_true", 0, "Y rises")
    draft = machine.session.predictions[0]
    assert draft.id == "PL-H1-T0-0001"
    assert draft.state == "draft"

    command = machine.lock_draft(draft.id)

    sealed = machine.session.find_prediction("PL-H1-T0-0001")
    assert command.type == CommandType.PREDICTION_LOCK
    assert sealed.state == "locked"
    assert sealed.original_text == "Y rises"
    assert len(machine.session.predictions) == 1


def test_lock_without_draft_creates_locked_prediction(machine: SessionMachine):
    machine.lock_prediction("H2", "impossible_if_true", 1, "Z never drops")
    prediction = machine.session.find_prediction_by_key("H2", "impossible_if_true", 1)
    assert prediction.id == "PL-H2-I1-0001"
    assert prediction.state == "locked"


def test_lock_with_text_replaces_draft_text(machine: SessionMachine):
    machine.draft_prediction("H1", "if_false", 0, "rough wording")
    machine.lock_prediction("H1", "if_false", 0, "Y stays flat without X")
    assert machine.session.predictions[0].original_text == "Y stays flat without X"


def test_lock_twice_raises(machine: SessionMachine):
    machine.lock_prediction("H1", "if_true", 0, "Y rises")
    with pytest.raises(InvalidStateError, match="already locked"):
        machine.lock_prediction("H1", "if_true", 0, "Y rises a lot")
    assert machine.session.predictions[0].original_text == "Y rises"


def test_lock_blank_text_leaves_session_unchanged(machine: SessionMachine):
    with pytest.raises(EmptyTextError):
        machine.lock_prediction("H1", "if_true", 0, "  ")
    assert machine.session.predictions == []
    assert not machine.can_undo


def test_draft_duplicate_slot_raises(machine: SessionMachine):
    machine.draft_prediction("H1", "if_true", 0, "Y rises")
    with pytest.raises(InvalidStateError):
        machine.draft_prediction("H1", "if_true", 0, "Y rises again")


def test_draft_invalid_type_raises(machine: SessionMachine):
    with pytest.raises(ValueError):
        machine.draft_prediction("H1", "if_maybe", 0, "Y rises")


def test_edit_draft_after_lock_raises(machine: SessionMachine):
    machine.draft_prediction("H1", "if_true", 0, "Y rises")
    machine.edit_draft("PL-H1-T0-0001", "Y rises quickly")
    assert machine.session.predictions[0].original_text == "Y rises quickly"

    machine.lock_draft("PL-H1-T0-0001")
    with pytest.raises(InvalidStateError):
        machine.edit_draft("PL-H1-T0-0001", "Y rises slowly")


def test_unknown_prediction_id_raises(machine: SessionMachine):
    with pytest.raises(ValueError, match="Unknown prediction"):
        machine.reveal_prediction("PL-H9-T0-0001", "nothing", "confirmed")


def test_lock_reveal_amend_scenario(machine: SessionMachine):
    machine.lock_prediction("H1", "if_true", 0, "Y rises within a week")
    pid = machine.session.predictions[0].id
    original = machine.session.predictions[0]

    machine.reveal_prediction(pid, "Y rose after 9 days", "inconclusive")
    machine.amend_prediction(pid, "clarification", "A week means 10 days", reason="")

    prediction = machine.session.find_prediction(pid)
    assert prediction.state == "amended"
    assert prediction.original_text == original.original_text
    assert prediction.lock_hash == original.lock_hash
    assert prediction.lock_timestamp == original.lock_timestamp
    assert prediction.amendments[0].reason == ""
    assert machine.verify_predictions() == {pid: True}


def test_amend_uses_policy_penalties(clock, ids):
    policy = EnginePolicy(amendment_penalties={"clarification": 5, "reinterpretation": 10, "scope_change": 15, "retraction": 25})
    m = create_session(clock=clock, ids=ids, policy=policy)
    m.lock_prediction("H1", "if_true", 0, "Y rises")
    m.reveal_prediction("PL-H1-T0-0001", "Y rose", "confirmed")
    m.amend_prediction("PL-H1-T0-0001", "clarification", "Y means serum Y")

    assert m.session.predictions[0].amendments[0].credibility_penalty == 5
    assert m.stats().total_penalty == 5
    assert m.stats().integrity_score == 95


def test_amend_with_partial_policy_falls_back_to_default_penalty(clock, ids):
    policy = EnginePolicy(amendment_penalties={"clarification": 5})
    m = create_session(clock=clock, ids=ids, policy=policy)
    m.lock_prediction("H1", "if_true", 0, "Y rises")
    m.reveal_prediction("PL-H1-T0-0001", "Y rose", "confirmed")
    m.amend_prediction("PL-H1-T0-0001", "retraction", "Withdrawn")

    assert m.session.predictions[0].amendments[0].credibility_penalty == 25


def test_amend_unknown_type_records_nothing(ready_machine: SessionMachine):
    ready_machine.reveal_prediction("PL-H1-T0-0001", "Y rose", "confirmed")
    before = len(ready_machine.session.history.commands)

    with pytest.raises(ValueError, match="Unknown amendment type"):
        ready_machine.amend_prediction("PL-H1-T0-0001", "excuse", "Never mind")

    assert len(ready_machine.session.history.commands) == before
    assert ready_machine.session.predictions[0].state == "revealed"


def test_verify_predictions_flags_tampering(machine: SessionMachine):
    machine.lock_prediction("H1", "if_true", 0, "Y rises")
    machine.lock_prediction("H1", "if_false", 0, "Y stays flat")
    tampered = dataclasses.replace(machine.session.predictions[0], original_text="Y falls")
    machine.session.predictions[0] = tampered

    results = machine.verify_predictions()
    assert results == {"PL-H1-T0-0001": False, "PL-H1-F0-0001": True}


def test_verify_includes_drafts(machine: SessionMachine):
    machine.draft_prediction("H1", "if_true", 0, "Y rises")
    assert machine.verify_predictions() == {"PL-H1-T0-0001": True}


def test_stats_counts_states(machine: SessionMachine):
    machine.draft_prediction("H1", "if_true", 0, "Y rises")
    machine.lock_prediction("H1", "if_false", 0, "Y stays flat")
    machine.lock_prediction("H2", "if_true", 0, "Z rises")
    machine.reveal_prediction("PL-H2-T0-0001", "Z rose", "refuted")

    stats = machine.stats()
    assert stats.total == 3
    assert stats.draft == 1
    assert stats.locked == 1
    assert stats.revealed == 1
    assert stats.refuted == 1
    assert stats.integrity_score == 100


def test_reveal_allowed_after_completion(ready_machine, advance_to):
    advance_to(ready_machine, SessionPhase.SYNTHESIS)
    ready_machine.complete()

    ready_machine.reveal_prediction("PL-H1-T0-0001", "Y rose", "confirmed")
    assert ready_machine.session.predictions[0].state == "revealed"
