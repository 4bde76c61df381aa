"""Pytest configuration and fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from brenner.config import EnginePolicy
from brenner.ledger import SessionLedger
from brenner.session.machine import SessionMachine, create_session
from brenner.session.phases import SessionPhase
from brenner.util import ManualClock, SequentialIds


@pytest.fixture
def clock() -> ManualClock:
    """Deterministic clock starting 2024-01-01T00:00:00Z, one second per read."""
    return ManualClock()


@pytest.fixture
def ids() -> SequentialIds:
    return SequentialIds()


@pytest.fixture
def ledger(tmp_path: Path) -> SessionLedger:
    return SessionLedger(tmp_path / ".brenner")


@pytest.fixture
def machine(clock: ManualClock, ids: SequentialIds) -> SessionMachine:
    """A fresh session at intake with deterministic time and ids."""
    return create_session(clock=clock, ids=ids)


@pytest.fixture
def contribution() -> dict[str, Any]:
    """One hypothesis and one discriminative test, enough to pass every gate."""
    return {
        "hypothesis_slate": [
            {
                "id": "H1",
                "name": "Direct effect",
                "claim": "X raises Y directly",
                "mechanism": "X activates the Y pathway",
                "anchors": ["§12"],
            },
        ],
        "discriminative_tests": [
            {
                "id": "T1",
                "name": "Block the pathway",
                "procedure": "Inhibit the Y pathway and re-apply X",
                "discriminates": "H1 vs H2",
                "expected_outcomes": {"H1": "Y stays flat", "H2": "Y still rises"},
                "potency_check": "Confirm the inhibitor works on a positive control",
            },
        ],
    }


def _advance_until(machine: SessionMachine, target: SessionPhase) -> None:
    while machine.session.phase != target:
        machine.advance()


@pytest.fixture
def advance_to():
    """Advance a machine phase by phase until the target phase is reached."""
    return _advance_until


@pytest.fixture
def ready_machine(machine: SessionMachine, contribution: dict[str, Any]) -> SessionMachine:
    """Session whose gates are all satisfied: hypothesis, merged slate, a locked prediction."""
    machine.set_hypothesis("Does X cause Y in adults?")
    machine.merge_contribution(contribution, "agent:codex")
    machine.lock_prediction("H1", "if_true", 0, "Y rises within a week")
    return machine


@pytest.fixture
def strict_policy() -> EnginePolicy:
    return EnginePolicy(min_hypothesis_length=30, max_history=3)
