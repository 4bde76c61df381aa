"""
Session research artifact.

One versioned document per session, built from agent contributions:

- Items keyed by stable ids; merges replace whole items (last writer wins)
- Version increments once per merge
- Contributor history (first and latest contribution)
- Structural validation separate from protocol lint hints
"""

from .merge import MergeResult, MergeWarning, merge_contribution
from .model import (
    LIST_SECTIONS,
    RESEARCH_THREAD,
    SECTION_NAMES,
    Artifact,
    ArtifactMetadata,
    Contributor,
    create_empty_artifact,
)
from .render import render_artifact_markdown
from .validation import Severity, Violation, lint_artifact, validate_artifact

__all__ = [
    # Model
    "Artifact",
    "ArtifactMetadata",
    "Contributor",
    "create_empty_artifact",
    "LIST_SECTIONS",
    "RESEARCH_THREAD",
    "SECTION_NAMES",
    # Merge
    "MergeResult",
    "MergeWarning",
    "merge_contribution",
    # Validation
    "Severity",
    "Violation",
    "validate_artifact",
    "lint_artifact",
    # Rendering
    "render_artifact_markdown",
]
