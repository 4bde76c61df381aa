"""
File-backed session persistence.

One JSON file per session under <root>/sessions/. Writes go to a temp file
that is then renamed over the target, so a crash never leaves a half-written
session behind.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from ..session.model import Session, SessionSummary, sort_by_progress

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class SessionStore:
    def __init__(self, root: Path):
        """
        Args:
            root: Brenner home directory
        """
        self.root = root
        self.sessions_dir = root / "sessions"

    def _path(self, session_id: str) -> Path:
        if not _SAFE_ID.match(session_id) or session_id.startswith("."):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self.sessions_dir / f"{session_id}.json"

    def save(self, session: Session) -> Path:
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(session.id)
        serialized = json.dumps(session.to_dict(), indent=2, ensure_ascii=False)

        temp_path = path.with_suffix(".tmp")
        temp_path.write_text(serialized + "\n", encoding="utf-8")
        temp_path.replace(path)
        logger.debug("Saved session %s", session.id)
        return path

    def load(self, session_id: str) -> Session | None:
        path = self._path(session_id)
        if not path.exists():
            return None
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Session file {path.name} does not hold a session object")
        try:
            return Session.from_dict(data)
        except (AttributeError, KeyError, TypeError) as e:
            raise ValueError(f"Session file {path.name} is malformed: {e}") from e

    def exists(self, session_id: str) -> bool:
        return self._path(session_id).exists()

    def delete(self, session_id: str) -> bool:
        path = self._path(session_id)
        if not path.exists():
            return False
        path.unlink()
        logger.debug("Deleted session %s", session_id)
        return True

    def ids(self) -> list[str]:
        if not self.sessions_dir.exists():
            return []
        return sorted(p.stem for p in self.sessions_dir.glob("*.json"))

    def list(self) -> list[SessionSummary]:
        """Summaries of all stored sessions, most advanced first."""
        summaries = []
        for session_id in self.ids():
            try:
                session = self.load(session_id)
            except ValueError as e:
                logger.warning("Skipping unreadable session %s: %s", session_id, e)
                continue
            if session is not None:
                summaries.append(session.summary())
        return sort_by_progress(summaries)

    def resolve(self, prefix: str) -> str | None:
        """
        Resolve a full session id from a unique prefix.

        Raises ValueError when the prefix is ambiguous.
        """
        ids = self.ids()
        if prefix in ids:
            return prefix
        matches = [i for i in ids if i.startswith(prefix)]
        if len(matches) > 1:
            raise ValueError(f"Ambiguous session id {prefix!r}: {', '.join(matches)}")
        return matches[0] if matches else None
