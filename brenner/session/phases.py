"""
Brenner Loop phases.

The phases form a fixed total order. The order gates advance(), bounds
go_to_step() and sorts sessions by progress.
"""

from __future__ import annotations

from enum import Enum


class SessionPhase(str, Enum):
    INTAKE = "intake"
    SHARPENING = "sharpening"
    LEVEL_SPLIT = "level_split"
    EXCLUSION_TEST = "exclusion_test"
    OBJECT_TRANSPOSE = "object_transpose"
    SCALE_CHECK = "scale_check"
    AGENT_DISPATCH = "agent_dispatch"
    SYNTHESIS = "synthesis"
    EVIDENCE_GATHERING = "evidence_gathering"
    REVISION = "revision"
    COMPLETE = "complete"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


PHASE_ORDER: tuple[SessionPhase, ...] = tuple(SessionPhase)

OPERATOR_PHASES = frozenset({
    SessionPhase.LEVEL_SPLIT,
    SessionPhase.EXCLUSION_TEST,
    SessionPhase.OBJECT_TRANSPOSE,
    SessionPhase.SCALE_CHECK,
})

# complete() is accepted from these phases only
COMPLETION_PHASES = frozenset({
    SessionPhase.SYNTHESIS,
    SessionPhase.EVIDENCE_GATHERING,
    SessionPhase.REVISION,
})

PHASE_NAMES: dict[SessionPhase, str] = {
    SessionPhase.INTAKE: "Hypothesis Intake",
    SessionPhase.SHARPENING: "Hypothesis Sharpening",
    SessionPhase.LEVEL_SPLIT: "Level Split",
    SessionPhase.EXCLUSION_TEST: "Exclusion Test",
    SessionPhase.OBJECT_TRANSPOSE: "Object Transpose",
    SessionPhase.SCALE_CHECK: "Scale Check",
    SessionPhase.AGENT_DISPATCH: "Agent Dispatch",
    SessionPhase.SYNTHESIS: "Synthesis",
    SessionPhase.EVIDENCE_GATHERING: "Evidence Gathering",
    SessionPhase.REVISION: "Revision",
    SessionPhase.COMPLETE: "Complete",
}

PHASE_DESCRIPTIONS: dict[SessionPhase, str] = {
    SessionPhase.INTAKE: "Enter your initial hypothesis and research question.",
    SessionPhase.SHARPENING: "Refine your hypothesis with predictions and falsification conditions.",
    SessionPhase.LEVEL_SPLIT: "Identify different levels of explanation that might be conflated.",
    SessionPhase.EXCLUSION_TEST: "Design tests that could definitively rule out your hypothesis.",
    SessionPhase.OBJECT_TRANSPOSE: "Consider alternative experimental systems or reference frames.",
    SessionPhase.SCALE_CHECK: "Verify physical and mathematical plausibility.",
    SessionPhase.AGENT_DISPATCH: "Send hypothesis to AI agents for analysis.",
    SessionPhase.SYNTHESIS: "Synthesize agent responses and identify consensus.",
    SessionPhase.EVIDENCE_GATHERING: "Execute tests and collect evidence.",
    SessionPhase.REVISION: "Revise hypothesis based on evidence.",
    SessionPhase.COMPLETE: "Session complete. Generate research brief.",
}

PHASE_SYMBOLS: dict[SessionPhase, str] = {
    SessionPhase.LEVEL_SPLIT: "⊘",
    SessionPhase.EXCLUSION_TEST: "✂",
    SessionPhase.OBJECT_TRANSPOSE: "⟂",
    SessionPhase.SCALE_CHECK: "⊞",
}


def phase_index(phase: SessionPhase | str) -> int:
    return PHASE_ORDER.index(SessionPhase(phase))


def next_phase(phase: SessionPhase) -> SessionPhase | None:
    i = phase_index(phase)
    return PHASE_ORDER[i + 1] if i + 1 < len(PHASE_ORDER) else None


def previous_phase(phase: SessionPhase) -> SessionPhase | None:
    i = phase_index(phase)
    return PHASE_ORDER[i - 1] if i > 0 else None


def later_phase(a: SessionPhase, b: SessionPhase) -> SessionPhase:
    return a if phase_index(a) >= phase_index(b) else b


def phase_name(phase: SessionPhase) -> str:
    return PHASE_NAMES.get(phase, phase.value)
