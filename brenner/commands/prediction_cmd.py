"""Prediction lock CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..lock.prediction import robustness_multiplier
from ..lock.seal import short_hash
from .workspace import Workspace, mutate, open_or_report


def run_predict_draft(
    home: Path,
    session_id: str,
    hypothesis_id: str,
    prediction_type: str,
    index: int,
    text: str,
) -> int:
    return mutate(home, session_id, lambda m: m.draft_prediction(hypothesis_id, prediction_type, index, text))


def run_predict_lock(
    home: Path,
    session_id: str,
    *,
    prediction_id: str | None = None,
    hypothesis_id: str | None = None,
    prediction_type: str | None = None,
    index: int | None = None,
    text: str | None = None,
) -> int:
    """Lock an existing draft by id, or seal (hypothesis, type, index) directly."""
    if prediction_id is not None:
        return mutate(home, session_id, lambda m: m.lock_draft(prediction_id))

    if hypothesis_id is None or prediction_type is None or index is None:
        Console(stderr=True).print(
            "Pass a draft id, or --hypothesis, --type and --index", style="bold red"
        )
        return 1
    return mutate(home, session_id, lambda m: m.lock_prediction(hypothesis_id, prediction_type, index, text))


def run_predict_reveal(home: Path, session_id: str, prediction_id: str, outcome: str, match: str) -> int:
    return mutate(home, session_id, lambda m: m.reveal_prediction(prediction_id, outcome, match))


def run_predict_amend(
    home: Path,
    session_id: str,
    prediction_id: str,
    amendment_type: str,
    text: str,
    *,
    reason: str | None = None,
) -> int:
    return mutate(home, session_id, lambda m: m.amend_prediction(prediction_id, amendment_type, text, reason))


def run_predict_verify(home: Path, session_id: str) -> int:
    """Recompute every lock hash. Exit code 1 when any prediction fails."""
    console = Console()
    err = Console(stderr=True)
    machine = open_or_report(Workspace(home), session_id, err)
    if machine is None:
        return 1

    results = machine.verify_predictions()
    if not results:
        console.print("No predictions", style="dim")
        return 0

    table = Table(title="Lock integrity")
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("state")
    table.add_column("hash", style="dim")
    table.add_column("integrity")
    for p in machine.session.predictions:
        ok = results[p.id]
        table.add_row(
            p.id,
            p.state,
            short_hash(p.lock_hash) if p.lock_hash else "",
            "[green]ok[/green]" if ok else "[bold red]MISMATCH[/bold red]",
        )
    console.print(table)

    failed = [pid for pid, ok in results.items() if not ok]
    if failed:
        err.print(f"{len(failed)} prediction(s) failed verification", style="bold red")
        return 1
    return 0


def run_predict_stats(home: Path, session_id: str, *, output_json: bool = False) -> int:
    console = Console()
    err = Console(stderr=True)
    machine = open_or_report(Workspace(home), session_id, err)
    if machine is None:
        return 1

    stats = machine.stats()
    multiplier = robustness_multiplier(stats)

    if output_json:
        print(json.dumps({**stats.to_dict(), "robustness_multiplier": multiplier}, indent=2))
        return 0

    table = Table(title="Prediction lock statistics")
    table.add_column("metric")
    table.add_column("value", justify="right")
    for key, value in stats.to_dict().items():
        table.add_row(escape(key), str(value))
    table.add_row("robustness_multiplier", f"{multiplier:.2f}")
    console.print(table)
    return 0
