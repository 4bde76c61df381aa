"""
Brenner Loop sessions.

A session walks a hypothesis through a fixed sequence of phases. Every
mutation goes through SessionMachine and is recorded for undo/redo.
"""

from .machine import SessionMachine, create_session
from .model import Session, SessionSummary, sort_by_progress
from .phases import (
    PHASE_DESCRIPTIONS,
    PHASE_NAMES,
    PHASE_ORDER,
    PHASE_SYMBOLS,
    SessionPhase,
    SessionStatus,
    phase_index,
)

__all__ = [
    "Session",
    "SessionMachine",
    "SessionPhase",
    "SessionStatus",
    "SessionSummary",
    "create_session",
    "sort_by_progress",
    "phase_index",
    "PHASE_ORDER",
    "PHASE_NAMES",
    "PHASE_DESCRIPTIONS",
    "PHASE_SYMBOLS",
]
