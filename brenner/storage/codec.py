"""
Session import/export.

JSON exports wrap the session in a versioned envelope with a sha256 checksum
of the canonical session JSON. Markdown exports carry the same envelope in
YAML front matter and add a human-readable body.

Imports never silently drop problems: format, checksum and lock-hash issues
come back as warnings alongside the session. Input that cannot be parsed
at all raises CodecError.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import frontmatter
import yaml

from ..artifact.render import render_artifact_markdown
from ..errors import CodecError
from ..lock.prediction import verify_lock
from ..lock.seal import canonical_json, is_well_formed_hash, short_hash
from ..session.model import Session
from ..session.phases import phase_name

logger = logging.getLogger(__name__)

EXPORT_FORMAT = "brenner-session-v1"


@dataclass
class ImportResult:
    session: Session
    warnings: list[str] = field(default_factory=list)


def session_checksum(session_data: dict[str, Any]) -> str:
    return hashlib.sha256(canonical_json(session_data).encode("utf-8")).hexdigest()


def _envelope(session: Session, exported_at: datetime | None) -> dict[str, Any]:
    data = session.to_dict()
    return {
        "format": EXPORT_FORMAT,
        "exported_at": (exported_at or datetime.now(timezone.utc)).isoformat(),
        "session": data,
        "checksum": session_checksum(data),
    }


# -----------------------------------------------------------------------------
# Export
# -----------------------------------------------------------------------------


def export_session_json(session: Session, *, exported_at: datetime | None = None) -> str:
    return json.dumps(_envelope(session, exported_at), indent=2, ensure_ascii=False) + "\n"


def export_session_markdown(session: Session, *, exported_at: datetime | None = None) -> str:
    post = frontmatter.Post(render_session_body(session), **_envelope(session, exported_at))
    return frontmatter.dumps(post) + "\n"


def render_session_body(session: Session) -> str:
    lines = [f"# Brenner Loop Session {session.id}", ""]
    lines.append("## Metadata")
    lines.append(f"- Phase: {phase_name(session.phase)}")
    lines.append(f"- Status: {session.status.value}")
    lines.append(f"- Confidence: {session.confidence}")
    if session.domain:
        lines.append(f"- Domain: {session.domain}")
    lines.append(f"- Created: {session.created_at.isoformat()}")
    lines.append(f"- Updated: {session.updated_at.isoformat()}")
    lines.append("")

    lines.append("## Hypothesis")
    lines.append("")
    lines.append(session.hypothesis or "_(none)_")
    lines.append("")

    if session.content:
        lines.append("## Notes")
        for key in sorted(session.content):
            lines.append(f"- {key}: {json.dumps(session.content[key], ensure_ascii=False)}")
        lines.append("")

    lines.append("## Locked Predictions")
    if not session.predictions:
        lines.append("")
        lines.append("_(none)_")
    for p in session.predictions:
        lines.append("")
        lines.append(f"### {p.id} [{p.state}]")
        lines.append(f"- Hypothesis: {p.hypothesis_id} ({p.prediction_type} #{p.original_index})")
        lines.append(f"- Text: {p.original_text}")
        if p.lock_hash:
            lines.append(f"- Lock hash: {short_hash(p.lock_hash)}")
        if p.outcome_match:
            lines.append(f"- Outcome: {p.outcome_match}: {p.observed_outcome}")
        for a in p.amendments:
            lines.append(f"- Amendment ({a.type}, -{a.credibility_penalty}): {a.text}")
    lines.append("")

    lines.append("## Artifact")
    lines.append("")
    lines.append(render_artifact_markdown(session.artifact, front_matter=False))
    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Import
# -----------------------------------------------------------------------------


def import_session_json(text: str) -> ImportResult:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise CodecError(f"Session import failed: not valid JSON ({e})") from e
    return _import_payload(payload)


def import_session_markdown(text: str) -> ImportResult:
    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as e:
        raise CodecError(f"Session import failed: invalid front matter ({e})") from e
    return _import_payload(dict(post.metadata))


def _import_payload(payload: Any) -> ImportResult:
    if not isinstance(payload, dict):
        raise CodecError("Session import failed: malformed export payload")

    warnings: list[str] = []

    fmt = payload.get("format")
    if fmt != EXPORT_FORMAT:
        warnings.append(f'Unexpected export format "{fmt or "missing"}"; attempting to import as {EXPORT_FORMAT}')

    raw = payload.get("session")
    if not isinstance(raw, dict):
        raise CodecError("Session import failed: missing or invalid session payload")

    if not isinstance(payload.get("exported_at"), str):
        warnings.append("Export timestamp missing or invalid")

    checksum = payload.get("checksum")
    if isinstance(checksum, str) and checksum:
        if session_checksum(raw) != checksum:
            warnings.append("Checksum mismatch; session data may be corrupted or modified")
    else:
        warnings.append("Checksum missing; integrity could not be verified")

    try:
        session = Session.from_dict(raw)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise CodecError(f"Session import failed: invalid session data ({e})") from e

    warnings.extend(lock_warnings(session))

    for warning in warnings:
        logger.warning("Import %s: %s", session.id, warning)
    return ImportResult(session=session, warnings=warnings)


def lock_warnings(session: Session) -> list[str]:
    """Integrity problems with sealed predictions, one message each."""
    warnings = []
    for p in session.predictions:
        if not p.is_sealed:
            continue
        if not p.lock_hash:
            warnings.append(f"Prediction {p.id} is {p.state} but has no lock hash")
        elif not is_well_formed_hash(p.lock_hash):
            warnings.append(f"Prediction {p.id} has a malformed lock hash")
        elif p.lock_timestamp is None:
            warnings.append(f"Prediction {p.id} has no lock timestamp")
        elif not verify_lock(p):
            warnings.append(f"Prediction {p.id} lock hash does not match its content")
    return warnings
