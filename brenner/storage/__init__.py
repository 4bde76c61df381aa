"""Session persistence and import/export."""

from .codec import (
    EXPORT_FORMAT,
    ImportResult,
    export_session_json,
    export_session_markdown,
    import_session_json,
    import_session_markdown,
)
from .store import SessionStore

__all__ = [
    "EXPORT_FORMAT",
    "ImportResult",
    "SessionStore",
    "export_session_json",
    "export_session_markdown",
    "import_session_json",
    "import_session_markdown",
]
