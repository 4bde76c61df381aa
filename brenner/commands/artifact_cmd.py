"""Artifact merge/validation and session import/export CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..artifact.render import render_artifact_markdown
from ..artifact.validation import Violation, lint_artifact, validate_artifact
from ..storage.codec import (
    export_session_json,
    export_session_markdown,
    import_session_json,
    import_session_markdown,
)
from .workspace import Workspace, open_or_report


def _load_contribution(path: Path) -> dict[str, Any]:
    """Read a contribution file. YAML is a superset of JSON, so both parse."""
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: contribution must be a mapping of section name to items")
    return data


def run_merge(
    home: Path,
    session_id: str,
    contribution_path: Path,
    agent: str,
    *,
    program: str | None = None,
    model: str | None = None,
) -> int:
    console = Console()
    err = Console(stderr=True)
    ws = Workspace(home)
    machine = open_or_report(ws, session_id, err)
    if machine is None:
        return 1

    agent_info = {k: v for k, v in (("program", program), ("model", model)) if v}
    try:
        contribution = _load_contribution(contribution_path)
        command = machine.merge_contribution(contribution, agent, agent_info or None)
    except (OSError, yaml.YAMLError, ValueError) as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    ws.save(machine)
    result = machine.last_merge
    console.print(f"{escape(command.description)} ({command.id})")
    if result is not None:
        for warning in result.warnings:
            console.print(f"  {warning.code}: {escape(warning.message)}", style="yellow")
    return 0


def _violation_table(title: str, violations: list[Violation]) -> Table:
    table = Table(title=title)
    table.add_column("rule", style="magenta", no_wrap=True)
    table.add_column("severity")
    table.add_column("section")
    table.add_column("item", style="cyan")
    table.add_column("message")
    for v in violations:
        table.add_row(v.rule_id, v.severity.value, v.section or "", v.item_id or "", escape(v.message))
    return table


def run_validate(home: Path, session_id: str, *, output_json: bool = False) -> int:
    """Structural validation. Exit code 1 when any violation is found."""
    console = Console()
    err = Console(stderr=True)
    machine = open_or_report(Workspace(home), session_id, err)
    if machine is None:
        return 1

    violations = validate_artifact(machine.session.artifact)
    if output_json:
        print(json.dumps([v.to_dict() for v in violations], indent=2))
    elif violations:
        console.print(_violation_table("Artifact violations", violations))
    else:
        console.print("Artifact is structurally valid", style="green")
    return 1 if violations else 0


def run_lint(home: Path, session_id: str, *, output_json: bool = False) -> int:
    """Protocol hints. Never fails."""
    console = Console()
    err = Console(stderr=True)
    machine = open_or_report(Workspace(home), session_id, err)
    if machine is None:
        return 1

    hints = lint_artifact(machine.session.artifact)
    if output_json:
        print(json.dumps([v.to_dict() for v in hints], indent=2))
    elif hints:
        console.print(_violation_table("Artifact lint", hints))
    else:
        console.print("No lint hints", style="green")
    return 0


def run_render(home: Path, session_id: str, *, output: Path | None = None) -> int:
    console = Console()
    err = Console(stderr=True)
    machine = open_or_report(Workspace(home), session_id, err)
    if machine is None:
        return 1

    markdown = render_artifact_markdown(machine.session.artifact)
    if output is None:
        print(markdown)
    else:
        output.write_text(markdown, encoding="utf-8")
        console.print(f"Wrote {output}")
    return 0


def run_export(home: Path, session_id: str, *, fmt: str = "json", output: Path | None = None) -> int:
    console = Console()
    err = Console(stderr=True)
    machine = open_or_report(Workspace(home), session_id, err)
    if machine is None:
        return 1

    if fmt == "markdown":
        text = export_session_markdown(machine.session)
    else:
        text = export_session_json(machine.session)

    if output is None:
        print(text, end="")
    else:
        output.write_text(text, encoding="utf-8")
        console.print(f"Exported {machine.session.id} to {output}")
    return 0


def run_import(home: Path, path: Path, *, force: bool = False) -> int:
    """
    Import a session export (.json or .md).

    An existing session with the same id is only replaced with --force.
    """
    console = Console()
    err = Console(stderr=True)
    ws = Workspace(home)

    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() in {".md", ".markdown"}:
            result = import_session_markdown(text)
        else:
            result = import_session_json(text)
    except (OSError, ValueError) as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    session = result.session
    try:
        exists = ws.store.exists(session.id)
    except ValueError as e:
        err.print(escape(str(e)), style="bold red")
        return 1
    if exists and not force:
        err.print(f"Session {escape(session.id)} already exists (use --force to replace it)", style="bold red")
        return 1

    for warning in result.warnings:
        console.print(f"warning: {escape(warning)}", style="yellow")
    ws.store.save(session)
    console.print(f"Imported session [cyan]{session.id}[/cyan]")
    return 0
