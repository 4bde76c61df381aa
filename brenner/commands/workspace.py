"""Shared plumbing for CLI commands: home lookup, load, mutate, save."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from rich.console import Console
from rich.markup import escape

from ..config import load_home_policy
from ..history.commands import SessionCommand
from ..ledger import SessionLedger
from ..session.machine import SessionMachine
from ..storage.store import SessionStore
from ..util import Clock, IdGenerator

HOME_DIRNAME = ".brenner"
CLI_ACTOR = "human:cli"


def find_home(start: Path) -> Path | None:
    """Find a .brenner directory by walking up from `start`."""
    cur = start.resolve()
    for p in (cur, *cur.parents):
        candidate = p / HOME_DIRNAME
        if candidate.is_dir():
            return candidate
    return None


class Workspace:
    def __init__(self, home: Path, *, clock: Clock | None = None, ids: IdGenerator | None = None):
        self.home = home
        self.store = SessionStore(home)
        self.ledger = SessionLedger(home)
        self.policy = load_home_policy(home)
        self.clock = clock
        self.ids = ids

    def machine(self, session) -> SessionMachine:
        return SessionMachine(
            session,
            clock=self.clock,
            ids=self.ids,
            policy=self.policy,
            ledger=self.ledger,
            actor=CLI_ACTOR,
        )

    def open(self, session_id: str) -> SessionMachine | None:
        """Load a session by id or unique id prefix."""
        resolved = self.store.resolve(session_id)
        if resolved is None:
            return None
        session = self.store.load(resolved)
        return self.machine(session) if session is not None else None

    def save(self, machine: SessionMachine) -> Path:
        return self.store.save(machine.session)


def open_or_report(ws: Workspace, session_id: str, err: Console) -> SessionMachine | None:
    try:
        machine = ws.open(session_id)
    except ValueError as e:
        err.print(escape(str(e)), style="bold red")
        return None
    if machine is None:
        err.print(f"Session not found: {escape(session_id)}", style="bold red")
    return machine


def mutate(
    home: Path,
    session_id: str,
    action: Callable[[SessionMachine], SessionCommand | None],
) -> int:
    """
    Load a session, apply one machine operation and save it.

    Rejected operations print a red message on stderr and return 1; the
    stored session is left untouched.
    """
    console = Console()
    err = Console(stderr=True)
    ws = Workspace(home)
    machine = open_or_report(ws, session_id, err)
    if machine is None:
        return 1

    try:
        command = action(machine)
    except ValueError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    ws.save(machine)
    if command is None:
        console.print("Nothing to do", style="dim")
    else:
        console.print(f"{escape(command.description)} ({command.id})")
    return 0
