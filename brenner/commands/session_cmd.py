"""Session lifecycle and history CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..domains import list_domain_templates
from ..session.machine import create_session
from ..session.phases import OPERATOR_PHASES, PHASE_ORDER, PHASE_SYMBOLS, phase_index, phase_name
from .workspace import CLI_ACTOR, Workspace, mutate, open_or_report


def parse_value(text: str) -> Any:
    """Interpret CLI input as JSON when it parses, else as a plain string."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def run_new(
    home: Path,
    hypothesis: str,
    *,
    domain: str | None = None,
    confidence: int | None = None,
) -> int:
    console = Console()
    err = Console(stderr=True)
    ws = Workspace(home)
    try:
        machine = create_session(
            hypothesis,
            domain=domain,
            confidence=confidence,
            policy=ws.policy,
            ledger=ws.ledger,
            actor=CLI_ACTOR,
        )
    except ValueError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    ws.save(machine)
    console.print(f"Created session [cyan]{machine.session.id}[/cyan]")
    return 0


def run_list(home: Path, *, output_json: bool = False) -> int:
    console = Console()
    summaries = Workspace(home).store.list()

    if output_json:
        print(json.dumps([s.to_dict() for s in summaries], indent=2))
        return 0

    if not summaries:
        console.print("No sessions", style="dim")
        return 0

    table = Table(title="Sessions")
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("phase", style="magenta")
    table.add_column("status")
    table.add_column("conf", justify="right")
    table.add_column("hypothesis")
    table.add_column("updated", style="dim")

    for s in summaries:
        hypothesis = s.hypothesis if len(s.hypothesis) <= 48 else s.hypothesis[:47] + "…"
        table.add_row(
            s.id,
            s.phase.value,
            s.status.value,
            str(s.confidence),
            escape(hypothesis),
            s.updated_at.isoformat(timespec="seconds"),
        )

    console.print(table)
    return 0


def run_show(home: Path, session_id: str, *, output_json: bool = False) -> int:
    console = Console()
    err = Console(stderr=True)
    ws = Workspace(home)
    machine = open_or_report(ws, session_id, err)
    if machine is None:
        return 1
    session = machine.session

    if output_json:
        print(json.dumps(session.state_dict(), indent=2, ensure_ascii=False))
        return 0

    console.print(f"[bold]{session.id}[/bold] ({session.status.value})")
    console.print(f"  hypothesis: {escape(session.hypothesis) or '-'}")
    console.print(f"  confidence: {session.confidence}")
    if session.domain:
        console.print(f"  domain: {session.domain}")
    console.print(f"  artifact: v{session.artifact.metadata.version} ({session.artifact.metadata.status})")

    current = phase_index(session.phase)
    reached = phase_index(session.max_phase_reached)
    for i, phase in enumerate(PHASE_ORDER):
        marker = "▶" if i == current else ("✓" if i <= reached else " ")
        symbol = PHASE_SYMBOLS.get(phase, " ")
        style = "bold" if i == current else ("" if i <= reached else "dim")
        label = f"{phase_name(phase)} (operator)" if phase in OPERATOR_PHASES else phase_name(phase)
        console.print(f"  {marker} {symbol} {label}", style=style or None)

    if not session.is_terminal:
        failure = machine.gate_failure()
        if failure:
            console.print(f"  next gate: {failure}", style="yellow")

    if session.predictions:
        table = Table(title="Predictions")
        table.add_column("id", style="cyan", no_wrap=True)
        table.add_column("state")
        table.add_column("outcome")
        table.add_column("text")
        for p in session.predictions:
            table.add_row(p.id, p.state, p.outcome_match or "", escape(p.original_text))
        console.print(table)

    undo = session.history.next_undo_description()
    redo = session.history.next_redo_description()
    if undo:
        console.print(f"  undo: {escape(undo)}", style="dim")
    if redo:
        console.print(f"  redo: {escape(redo)}", style="dim")
    return 0


def run_advance(home: Path, session_id: str) -> int:
    return mutate(home, session_id, lambda m: m.advance())


def run_back(home: Path, session_id: str) -> int:
    return mutate(home, session_id, lambda m: m.retreat())


def run_goto(home: Path, session_id: str, phase: str) -> int:
    return mutate(home, session_id, lambda m: m.go_to_step(phase))


def run_set(home: Path, session_id: str, key: str, value: str, *, selection: bool = False) -> int:
    parsed = parse_value(value)
    if key == "hypothesis":
        parsed = value
    if selection:
        return mutate(home, session_id, lambda m: m.set_selection(key, parsed))
    return mutate(home, session_id, lambda m: m.set_content(key, parsed))


def run_confidence(home: Path, session_id: str, value: int) -> int:
    return mutate(home, session_id, lambda m: m.set_confidence(value))


def run_complete(home: Path, session_id: str, *, result: str | None = None) -> int:
    parsed = parse_value(result) if result is not None else None
    return mutate(home, session_id, lambda m: m.complete(parsed))


def run_abandon(home: Path, session_id: str) -> int:
    return mutate(home, session_id, lambda m: m.abandon())


def run_undo(home: Path, session_id: str) -> int:
    return mutate(home, session_id, lambda m: m.undo())


def run_redo(home: Path, session_id: str) -> int:
    return mutate(home, session_id, lambda m: m.redo())


def run_undo_to(home: Path, session_id: str, command_id: str) -> int:
    console = Console()
    err = Console(stderr=True)
    ws = Workspace(home)
    machine = open_or_report(ws, session_id, err)
    if machine is None:
        return 1

    try:
        moved = machine.undo_to_command(command_id)
    except ValueError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    ws.save(machine)
    if not moved:
        console.print("Nothing to do", style="dim")
    for command in moved:
        console.print(f"  {escape(command.description)} ({command.id})", style="dim")
    console.print(f"At {command_id}")
    return 0


def run_history(home: Path, session_id: str, *, limit: int = 20, output_json: bool = False) -> int:
    console = Console()
    err = Console(stderr=True)
    machine = open_or_report(Workspace(home), session_id, err)
    if machine is None:
        return 1
    history = machine.session.history

    if output_json:
        print(json.dumps(history.to_dict(), indent=2, ensure_ascii=False))
        return 0

    if not history.commands:
        console.print("No history", style="dim")
        return 0

    table = Table(title=f"History ({history.cursor}/{len(history)} applied)")
    table.add_column("", no_wrap=True)
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("type", style="magenta")
    table.add_column("description")
    table.add_column("timestamp", style="dim")

    start = max(0, len(history.commands) - limit) if limit else 0
    for i, command in enumerate(history.commands[start:], start=start):
        table.add_row(
            "✓" if i < history.cursor else "·",
            command.id,
            command.type.value,
            escape(command.description),
            command.timestamp.isoformat(timespec="seconds"),
        )
    console.print(table)
    return 0


def run_domains(*, domain_id: str | None = None) -> int:
    console = Console()
    err = Console(stderr=True)
    templates = list_domain_templates()

    if domain_id is None:
        table = Table(title="Domain templates")
        table.add_column("id", style="cyan", no_wrap=True)
        table.add_column("name")
        table.add_column("confounds", justify="right")
        table.add_column("designs", justify="right")
        for t in templates:
            table.add_row(t.id, t.name, str(len(t.confounds)), str(len(t.designs)))
        console.print(table)
        return 0

    template = next((t for t in templates if t.id == domain_id), None)
    if template is None:
        err.print(f"Unknown domain: {escape(domain_id)}", style="bold red")
        return 1

    console.print(f"[bold]{escape(template.name)}[/bold]: {escape(template.description)}")
    if template.effect_size_norms:
        n = template.effect_size_norms
        console.print(f"  effect sizes ({escape(n.metric)}): small {n.small}, medium {n.medium}, large {n.large}")
    if template.confounds:
        table = Table(title="Confounds")
        table.add_column("id", style="cyan", no_wrap=True)
        table.add_column("name")
        table.add_column("prior", justify="right")
        for c in sorted(template.confounds, key=lambda c: -c.base_likelihood):
            table.add_row(c.id, escape(c.name), f"{c.base_likelihood:.2f}")
        console.print(table)
    if template.designs:
        table = Table(title="Research designs")
        table.add_column("id", style="cyan", no_wrap=True)
        table.add_column("name")
        table.add_column("power", justify="right")
        for d in template.designs:
            table.add_row(d.id, escape(d.name), str(d.discriminative_power))
        console.print(table)
    return 0
