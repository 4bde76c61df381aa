"""Command pattern undo/redo for session mutations."""

from .commands import CommandType, SessionCommand, apply_patch
from .engine import CommandHistory

__all__ = ["CommandHistory", "CommandType", "SessionCommand", "apply_patch"]
