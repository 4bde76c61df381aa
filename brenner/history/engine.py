"""
Linear undo/redo history with a cursor.

commands[:cursor] are applied; commands[cursor:] form the redo tail. A new
command truncates the redo tail. Bounded history drops the oldest entries
first, so every retained command can still be undone to.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..errors import CommandNotFoundError
from .commands import SessionCommand, apply_patch

if TYPE_CHECKING:
    from ..session.model import Session

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 200


class CommandHistory:
    def __init__(
        self,
        commands: list[SessionCommand] | None = None,
        cursor: int | None = None,
        *,
        max_history: int | None = DEFAULT_MAX_HISTORY,
    ):
        self.commands: list[SessionCommand] = list(commands or [])
        self.cursor = len(self.commands) if cursor is None else cursor
        if not 0 <= self.cursor <= len(self.commands):
            raise ValueError(f"cursor {self.cursor} out of range for {len(self.commands)} commands")
        self.max_history = max_history

    def __len__(self) -> int:
        return len(self.commands)

    @property
    def can_undo(self) -> bool:
        return self.cursor > 0

    @property
    def can_redo(self) -> bool:
        return self.cursor < len(self.commands)

    @property
    def applied(self) -> list[SessionCommand]:
        return self.commands[: self.cursor]

    @property
    def redo_tail(self) -> list[SessionCommand]:
        return self.commands[self.cursor :]

    def next_undo_description(self) -> str | None:
        return self.commands[self.cursor - 1].description if self.can_undo else None

    def next_redo_description(self) -> str | None:
        return self.commands[self.cursor].description if self.can_redo else None

    def recent(self, limit: int = 10) -> list[SessionCommand]:
        """Most recent applied commands, newest first."""
        return list(reversed(self.applied[-limit:]))

    def index_of(self, command_id: str) -> int:
        for i, command in enumerate(self.commands):
            if command.id == command_id:
                return i
        raise CommandNotFoundError(command_id)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def execute(self, session: Session, command: SessionCommand) -> SessionCommand:
        apply_patch(session, command.forward)
        del self.commands[self.cursor :]
        self.commands.append(command)
        self.cursor = len(self.commands)
        self._trim()
        logger.debug("Executed %s (%s): %s", command.id, command.type.value, command.description)
        return command

    def undo(self, session: Session) -> SessionCommand | None:
        if not self.can_undo:
            return None
        command = self.commands[self.cursor - 1]
        apply_patch(session, command.inverse)
        self.cursor -= 1
        logger.debug("Undid %s: %s", command.id, command.description)
        return command

    def redo(self, session: Session) -> SessionCommand | None:
        if not self.can_redo:
            return None
        command = self.commands[self.cursor]
        apply_patch(session, command.forward)
        self.cursor += 1
        logger.debug("Redid %s: %s", command.id, command.description)
        return command

    def undo_to_command(self, session: Session, command_id: str) -> list[SessionCommand]:
        """
        Move the cursor to just after `command_id`.

        Undoes when the target is applied, redoes when it sits in the redo
        tail. Returns the commands that were undone or redone, in order.
        """
        target = self.index_of(command_id) + 1
        moved: list[SessionCommand] = []
        while self.cursor > target:
            command = self.undo(session)
            if command is None:
                break
            moved.append(command)
        while self.cursor < target:
            command = self.redo(session)
            if command is None:
                break
            moved.append(command)
        return moved

    def clear(self) -> None:
        self.commands.clear()
        self.cursor = 0

    def _trim(self) -> None:
        if not self.max_history or len(self.commands) <= self.max_history:
            return
        drop = len(self.commands) - self.max_history
        del self.commands[:drop]
        self.cursor -= drop

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "commands": [c.to_dict() for c in self.commands],
            "cursor": self.cursor,
            "max_history": self.max_history,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CommandHistory:
        commands = [SessionCommand.from_dict(c) for c in data.get("commands", [])]
        return cls(
            commands,
            int(data.get("cursor", len(commands))),
            max_history=data.get("max_history", DEFAULT_MAX_HISTORY),
        )
