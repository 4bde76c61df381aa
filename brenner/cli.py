"""CLI entrypoint for brenner."""

import logging
import sys
from pathlib import Path

import click

from . import __version__
from .config import AMENDMENT_TYPES
from .lock.prediction import OUTCOME_MATCHES, PREDICTION_TYPES
from .session.phases import PHASE_ORDER

PHASE_CHOICES = [p.value for p in PHASE_ORDER]


def _configure_logging(verbose: bool) -> None:
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )


@click.group()
@click.version_option(__version__, prog_name="brenner")
@click.option(
    "--home",
    type=click.Path(exists=False, file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Brenner home directory (defaults to an auto-detected .brenner, else ./.brenner)",
)
@click.option("--verbose", is_flag=True, help="Log engine activity (command execution, undo, redo)")
@click.pass_context
def cli(ctx: click.Context, home: Path | None, verbose: bool) -> None:
    """brenner - Brenner Loop session engine.

    Walk a hypothesis through the Brenner Loop phases, lock predictions
    before evidence arrives, merge agent contributions into the session
    artifact, and undo any step.
    """
    from .commands.workspace import HOME_DIRNAME, find_home

    _configure_logging(verbose)
    ctx.ensure_object(dict)
    if home is None:
        home = find_home(Path.cwd()) or Path.cwd() / HOME_DIRNAME

    if home.exists() and not home.is_dir():
        raise click.BadParameter(f"'{home}' is not a directory.", param_hint="--home")

    ctx.obj["home"] = home.resolve()


# -----------------------------------------------------------------------------
# Sessions
# -----------------------------------------------------------------------------


@cli.command()
@click.argument("hypothesis", default="")
@click.option("--domain", default=None, help="Domain template id (see `brenner domains`)")
@click.option("--confidence", type=click.IntRange(0, 100), default=None, help="Initial confidence (0-100)")
@click.pass_context
def new(ctx: click.Context, hypothesis: str, domain: str | None, confidence: int | None) -> None:
    """Start a new session at intake.

    Examples:

        brenner new "Does X cause Y?" --domain psychology
    """
    from .commands.session_cmd import run_new

    sys.exit(run_new(ctx.obj["home"], hypothesis, domain=domain, confidence=confidence))


@cli.command("list")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_sessions(ctx: click.Context, output_json: bool) -> None:
    """List sessions, most advanced first."""
    from .commands.session_cmd import run_list

    sys.exit(run_list(ctx.obj["home"], output_json=output_json))


@cli.command()
@click.argument("session_id")
@click.option("--json", "output_json", is_flag=True, help="Output session state as JSON")
@click.pass_context
def show(ctx: click.Context, session_id: str, output_json: bool) -> None:
    """Show a session: phase progress, gate status, predictions."""
    from .commands.session_cmd import run_show

    sys.exit(run_show(ctx.obj["home"], session_id, output_json=output_json))


@cli.command()
@click.argument("session_id")
@click.pass_context
def advance(ctx: click.Context, session_id: str) -> None:
    """Advance to the next phase if the exit gate is met."""
    from .commands.session_cmd import run_advance

    sys.exit(run_advance(ctx.obj["home"], session_id))


@cli.command()
@click.argument("session_id")
@click.pass_context
def back(ctx: click.Context, session_id: str) -> None:
    """Go back one phase."""
    from .commands.session_cmd import run_back

    sys.exit(run_back(ctx.obj["home"], session_id))


@cli.command()
@click.argument("session_id")
@click.argument("phase", type=click.Choice(PHASE_CHOICES))
@click.pass_context
def goto(ctx: click.Context, session_id: str, phase: str) -> None:
    """Jump to a phase already reached."""
    from .commands.session_cmd import run_goto

    sys.exit(run_goto(ctx.obj["home"], session_id, phase))


@cli.command("set")
@click.argument("session_id")
@click.argument("key")
@click.argument("value")
@click.option("--selection", is_flag=True, help="Store under selections instead of content")
@click.pass_context
def set_value(ctx: click.Context, session_id: str, key: str, value: str, selection: bool) -> None:
    """Set a content (or selection) value. VALUE is parsed as JSON when possible.

    The keys `hypothesis` and `confidence` update the session fields.
    """
    from .commands.session_cmd import run_set

    sys.exit(run_set(ctx.obj["home"], session_id, key, value, selection=selection))


@cli.command()
@click.argument("session_id")
@click.argument("value", type=int)
@click.pass_context
def confidence(ctx: click.Context, session_id: str, value: int) -> None:
    """Set confidence (0-100)."""
    from .commands.session_cmd import run_confidence

    sys.exit(run_confidence(ctx.obj["home"], session_id, value))


@cli.command()
@click.argument("session_id")
@click.option("--result", default=None, help="Result summary (JSON or text)")
@click.pass_context
def complete(ctx: click.Context, session_id: str, result: str | None) -> None:
    """Complete the session (from synthesis, evidence gathering or revision)."""
    from .commands.session_cmd import run_complete

    sys.exit(run_complete(ctx.obj["home"], session_id, result=result))


@cli.command()
@click.argument("session_id")
@click.pass_context
def abandon(ctx: click.Context, session_id: str) -> None:
    """Abandon the session."""
    from .commands.session_cmd import run_abandon

    sys.exit(run_abandon(ctx.obj["home"], session_id))


# -----------------------------------------------------------------------------
# History
# -----------------------------------------------------------------------------


@cli.command()
@click.argument("session_id")
@click.option("--limit", type=int, default=20, help="Show at most this many commands (0 for all)")
@click.option("--json", "output_json", is_flag=True, help="Output history as JSON")
@click.pass_context
def history(ctx: click.Context, session_id: str, limit: int, output_json: bool) -> None:
    """Show the command history and undo cursor."""
    from .commands.session_cmd import run_history

    sys.exit(run_history(ctx.obj["home"], session_id, limit=limit, output_json=output_json))


@cli.command()
@click.argument("session_id")
@click.pass_context
def undo(ctx: click.Context, session_id: str) -> None:
    """Undo the last command."""
    from .commands.session_cmd import run_undo

    sys.exit(run_undo(ctx.obj["home"], session_id))


@cli.command()
@click.argument("session_id")
@click.pass_context
def redo(ctx: click.Context, session_id: str) -> None:
    """Redo the next undone command."""
    from .commands.session_cmd import run_redo

    sys.exit(run_redo(ctx.obj["home"], session_id))


@cli.command("undo-to")
@click.argument("session_id")
@click.argument("command_id")
@click.pass_context
def undo_to(ctx: click.Context, session_id: str, command_id: str) -> None:
    """Move the history cursor to just after COMMAND_ID."""
    from .commands.session_cmd import run_undo_to

    sys.exit(run_undo_to(ctx.obj["home"], session_id, command_id))


# -----------------------------------------------------------------------------
# Predictions
# -----------------------------------------------------------------------------


@cli.group()
def predict() -> None:
    """Prediction lock commands (draft, lock, reveal, amend, verify)."""
    pass


@predict.command("draft")
@click.argument("session_id")
@click.argument("hypothesis_id")
@click.argument("prediction_type", type=click.Choice(sorted(PREDICTION_TYPES)))
@click.argument("index", type=int)
@click.argument("text")
@click.pass_context
def predict_draft(
    ctx: click.Context,
    session_id: str,
    hypothesis_id: str,
    prediction_type: str,
    index: int,
    text: str,
) -> None:
    """Create an editable draft prediction."""
    from .commands.prediction_cmd import run_predict_draft

    sys.exit(run_predict_draft(ctx.obj["home"], session_id, hypothesis_id, prediction_type, index, text))


@predict.command("lock")
@click.argument("session_id")
@click.argument("prediction_id", required=False)
@click.option("--hypothesis", "hypothesis_id", default=None, help="Hypothesis id")
@click.option("--type", "prediction_type", type=click.Choice(sorted(PREDICTION_TYPES)), default=None)
@click.option("--index", type=int, default=None, help="Prediction index within the hypothesis")
@click.option("--text", default=None, help="Prediction text (defaults to the draft text)")
@click.pass_context
def predict_lock(
    ctx: click.Context,
    session_id: str,
    prediction_id: str | None,
    hypothesis_id: str | None,
    prediction_type: str | None,
    index: int | None,
    text: str | None,
) -> None:
    """Seal a prediction before evidence is collected.

    Examples:

        brenner predict lock SESSION PL-H1-T0-0001

        brenner predict lock SESSION --hypothesis H1 --type if_true --index 0 --text "..."
    """
    from .commands.prediction_cmd import run_predict_lock

    sys.exit(
        run_predict_lock(
            ctx.obj["home"],
            session_id,
            prediction_id=prediction_id,
            hypothesis_id=hypothesis_id,
            prediction_type=prediction_type,
            index=index,
            text=text,
        )
    )


@predict.command("reveal")
@click.argument("session_id")
@click.argument("prediction_id")
@click.argument("outcome")
@click.option("--match", "match", type=click.Choice(sorted(OUTCOME_MATCHES)), required=True)
@click.pass_context
def predict_reveal(ctx: click.Context, session_id: str, prediction_id: str, outcome: str, match: str) -> None:
    """Record the observed outcome of a locked prediction."""
    from .commands.prediction_cmd import run_predict_reveal

    sys.exit(run_predict_reveal(ctx.obj["home"], session_id, prediction_id, outcome, match))


@predict.command("amend")
@click.argument("session_id")
@click.argument("prediction_id")
@click.argument("amendment_type", type=click.Choice(list(AMENDMENT_TYPES)))
@click.argument("text")
@click.option("--reason", default=None, help="Why the amendment is needed")
@click.pass_context
def predict_amend(
    ctx: click.Context,
    session_id: str,
    prediction_id: str,
    amendment_type: str,
    text: str,
    reason: str | None,
) -> None:
    """Append an amendment to a revealed prediction (costs credibility)."""
    from .commands.prediction_cmd import run_predict_amend

    sys.exit(run_predict_amend(ctx.obj["home"], session_id, prediction_id, amendment_type, text, reason=reason))


@predict.command("verify")
@click.argument("session_id")
@click.pass_context
def predict_verify(ctx: click.Context, session_id: str) -> None:
    """Recompute lock hashes and report tampering."""
    from .commands.prediction_cmd import run_predict_verify

    sys.exit(run_predict_verify(ctx.obj["home"], session_id))


@predict.command("stats")
@click.argument("session_id")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def predict_stats(ctx: click.Context, session_id: str, output_json: bool) -> None:
    """Show lock counts and the integrity score."""
    from .commands.prediction_cmd import run_predict_stats

    sys.exit(run_predict_stats(ctx.obj["home"], session_id, output_json=output_json))


# -----------------------------------------------------------------------------
# Artifact
# -----------------------------------------------------------------------------


@cli.command()
@click.argument("session_id")
@click.argument("contribution", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--agent", required=True, help="Contributing agent name")
@click.option("--program", default=None, help="Agent program (e.g. claude-code)")
@click.option("--model", default=None, help="Agent model")
@click.pass_context
def merge(
    ctx: click.Context,
    session_id: str,
    contribution: Path,
    agent: str,
    program: str | None,
    model: str | None,
) -> None:
    """Merge an agent contribution (JSON or YAML) into the session artifact."""
    from .commands.artifact_cmd import run_merge

    sys.exit(run_merge(ctx.obj["home"], session_id, contribution, agent, program=program, model=model))


@cli.command()
@click.argument("session_id")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def validate(ctx: click.Context, session_id: str, output_json: bool) -> None:
    """Check the artifact structure. Exits 1 on violations."""
    from .commands.artifact_cmd import run_validate

    sys.exit(run_validate(ctx.obj["home"], session_id, output_json=output_json))


@cli.command()
@click.argument("session_id")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def lint(ctx: click.Context, session_id: str, output_json: bool) -> None:
    """Show protocol hints for the artifact."""
    from .commands.artifact_cmd import run_lint

    sys.exit(run_lint(ctx.obj["home"], session_id, output_json=output_json))


@cli.command()
@click.argument("session_id")
@click.option("--out", "output", type=click.Path(dir_okay=False, path_type=Path), help="Output file (default: stdout)")
@click.pass_context
def render(ctx: click.Context, session_id: str, output: Path | None) -> None:
    """Render the artifact as Markdown."""
    from .commands.artifact_cmd import run_render

    sys.exit(run_render(ctx.obj["home"], session_id, output=output))


@cli.command()
@click.argument("session_id")
@click.option("--format", "fmt", type=click.Choice(["json", "markdown"]), default="json", help="Export format")
@click.option("--out", "output", type=click.Path(dir_okay=False, path_type=Path), help="Output file (default: stdout)")
@click.pass_context
def export(ctx: click.Context, session_id: str, fmt: str, output: Path | None) -> None:
    """Export a session with its checksum."""
    from .commands.artifact_cmd import run_export

    sys.exit(run_export(ctx.obj["home"], session_id, fmt=fmt, output=output))


@cli.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--force", is_flag=True, help="Replace an existing session with the same id")
@click.pass_context
def import_session(ctx: click.Context, path: Path, force: bool) -> None:
    """Import a session export (.json or .md)."""
    from .commands.artifact_cmd import run_import

    sys.exit(run_import(ctx.obj["home"], path, force=force))


@cli.command()
@click.argument("domain_id", required=False)
def domains(domain_id: str | None) -> None:
    """List domain templates, or show one."""
    from .commands.session_cmd import run_domains

    sys.exit(run_domains(domain_id=domain_id))


def main() -> None:
    """Main entrypoint."""
    cli()


if __name__ == "__main__":
    main()
