"""Canonical Markdown rendering of an artifact (YAML front matter + sections)."""

from __future__ import annotations

import re
from typing import Any

import yaml

from .model import Artifact

_ID_NUMBER = re.compile(r"^[A-Z]+(\d+)$")


def _inline(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _cell(value: Any) -> str:
    return _inline(value).replace("|", "\\|").replace("\n", "<br/>")


def _string_list(value: Any, empty: str = "inference") -> str:
    if not isinstance(value, list):
        return empty
    strings = [v.strip() for v in value if isinstance(v, str) and v.strip()]
    return ", ".join(strings) if strings else empty


def _sort_key(item: dict[str, Any]) -> tuple[int, int, str]:
    item_id = str(item.get("id", ""))
    match = _ID_NUMBER.match(item_id)
    if match:
        return (0, int(match.group(1)), item_id)
    return (1, 0, item_id)


def _sorted(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted((i for i in items if isinstance(i, dict)), key=_sort_key)


def _killed(item: dict[str, Any]) -> bool:
    return item.get("killed") is True


def _heading(item: dict[str, Any], title: str) -> str:
    text = f"{item.get('id', '')}: {title}"
    return f"### ~~{text}~~" if _killed(item) else f"### {text}"


def _kill_block(item: dict[str, Any]) -> list[str]:
    if not _killed(item):
        return []
    lines = ["", "**Killed**: true"]
    for key, label in (("killed_by", "Killed by"), ("killed_at", "Killed at"), ("kill_reason", "Kill reason")):
        if item.get(key):
            lines.append(f"**{label}**: {item[key]}")
    return lines


def render_front_matter(artifact: Artifact) -> str:
    body = yaml.safe_dump(artifact.metadata.to_dict(), sort_keys=False, allow_unicode=True)
    return f"---\n{body}---"


def render_artifact_markdown(artifact: Artifact, *, front_matter: bool = True) -> str:
    lines: list[str] = [render_front_matter(artifact), ""] if front_matter else []
    lines.append(f"# Brenner Protocol Artifact: {artifact.metadata.session_id}")
    lines.append("")

    rt = artifact.research_thread if isinstance(artifact.research_thread, dict) else None
    lines.append("## 1. Research Thread")
    lines.append("")
    lines.append(f"**RT**: {_inline(rt.get('statement')) if rt else ''}")
    lines.append("")
    lines.append(f"**Context**: {_inline(rt.get('context')) if rt else ''}")
    lines.append("")
    lines.append(f"**Why it matters**: {_inline(rt.get('why_it_matters')) if rt else ''}")
    lines.append("")
    lines.append(f"**Anchors**: {_string_list(rt.get('anchors')) if rt else 'inference'}")
    lines.append("")

    hypotheses = _sorted(artifact.sections.get("hypothesis_slate", []))
    lines.append("## 2. Hypothesis Slate")
    lines.append("")
    for h in hypotheses:
        name = _inline(h.get("name"))
        if h.get("third_alternative") is True and not re.search(r"third\s+alternative", name, re.I):
            name = f"{name} (Third Alternative)"
        lines.append(_heading(h, name))
        lines.append(f"**Claim**: {_inline(h.get('claim'))}")
        lines.append(f"**Mechanism**: {_inline(h.get('mechanism'))}")
        lines.append(f"**Anchors**: {_string_list(h.get('anchors'))}")
        lines.extend(_kill_block(h))
        lines.append("")

    hypothesis_ids = [str(h.get("id")) for h in hypotheses]
    lines.append("## 3. Predictions Table")
    lines.append("")
    header = ["ID", "Observation/Condition", *hypothesis_ids]
    lines.append(f"| {' | '.join(header)} |")
    lines.append(f"| {' | '.join('---' for _ in header)} |")
    for p in _sorted(artifact.sections.get("predictions_table", [])):
        predictions = p.get("predictions") if isinstance(p.get("predictions"), dict) else {}
        row = [f"~~{p.get('id')}~~" if _killed(p) else str(p.get("id")), _cell(p.get("condition"))]
        row.extend(_cell(predictions.get(hid, "—")) for hid in hypothesis_ids)
        lines.append(f"| {' | '.join(row)} |")
    lines.append("")

    lines.append("## 4. Discriminative Tests")
    lines.append("")
    for t in _sorted(artifact.sections.get("discriminative_tests", [])):
        lines.append(_heading(t, _inline(t.get("name"))))
        lines.append(f"**Procedure**: {_inline(t.get('procedure'))}")
        lines.append(f"**Discriminates**: {_inline(t.get('discriminates'))}")
        outcomes = t.get("expected_outcomes") if isinstance(t.get("expected_outcomes"), dict) else {}
        lines.append("**Expected outcomes**:")
        for key, value in outcomes.items():
            lines.append(f"- {key}: {_inline(value)}")
        lines.append(f"**Potency check**: {_inline(t.get('potency_check'))}")
        lines.extend(_kill_block(t))
        lines.append("")

    for number, section, title, fields in (
        (5, "assumption_ledger", "Assumption Ledger", ("statement", "load", "test", "status")),
        (6, "anomaly_register", "Anomaly Register", ("observation", "status", "resolution_plan")),
        (7, "adversarial_critique", "Adversarial Critique", ("attack", "evidence", "current_status")),
    ):
        lines.append(f"## {number}. {title}")
        lines.append("")
        for item in _sorted(artifact.sections.get(section, [])):
            lines.append(_heading(item, _inline(item.get("name"))))
            for key in fields:
                if item.get(key):
                    label = key.replace("_", " ").capitalize()
                    lines.append(f"**{label}**: {_inline(item.get(key))}")
            lines.extend(_kill_block(item))
            lines.append("")

    return "\n".join(lines).rstrip() + "\n"
