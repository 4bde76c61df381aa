"""
Error kinds raised by the session engine.

Every error is local to one operation: the session is left unchanged and
remains usable. All kinds subclass ValueError so callers that treat a rejected
operation as bad input keep working.
"""

from __future__ import annotations


class BrennerError(ValueError):
    """Base class for rejected engine operations."""


class PhaseGateError(BrennerError):
    """advance()/complete() blocked by an unmet phase criterion."""

    def __init__(self, phase: str, criterion: str):
        self.phase = phase
        self.criterion = criterion
        super().__init__(f"Cannot leave {phase}: {criterion}")


class InvalidTransitionError(BrennerError):
    """Illegal phase target (unvisited phase, terminal session, ...)."""


class InvalidStateError(BrennerError):
    """Lifecycle operation called from the wrong state."""


class EmptyTextError(BrennerError):
    """Blank text where content is required."""


class CommandNotFoundError(BrennerError):
    """Undo-to-point target is not in the command history."""

    def __init__(self, command_id: str):
        self.command_id = command_id
        super().__init__(f"Command not found in history: {command_id}")


class CodecError(BrennerError):
    """Import payload could not be decoded."""
