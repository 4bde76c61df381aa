"""
Engine policy: gate thresholds, completion rules, history bound and
credibility penalties.

Policies are data loaded from TOML; evaluation lives in the engine.

    [gates]
    min_hypothesis_length = 10
    require_locked_predictions = true

    [history]
    max_history = 200          # 0 disables trimming

    [penalties]
    clarification = 2
    reinterpretation = 10
    scope_change = 15
    retraction = 25
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping


AMENDMENT_TYPES = ("clarification", "reinterpretation", "scope_change", "retraction")

DEFAULT_PENALTIES: Mapping[str, int] = MappingProxyType({
    "clarification": 2,
    "reinterpretation": 10,
    "scope_change": 15,
    "retraction": 25,
})


@dataclass(frozen=True)
class EnginePolicy:
    min_hypothesis_length: int = 10
    require_locked_predictions: bool = True
    max_history: int | None = 200
    amendment_penalties: Mapping[str, int] = field(default_factory=lambda: DEFAULT_PENALTIES)

    def penalty_for(self, amendment_type: str) -> int:
        if amendment_type not in AMENDMENT_TYPES:
            raise ValueError(f"Unknown amendment type: {amendment_type!r}")
        return int(self.amendment_penalties.get(amendment_type, DEFAULT_PENALTIES[amendment_type]))


def _coerce_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def load_policy(path: Path) -> EnginePolicy:
    """Load an EnginePolicy from TOML. Missing keys keep their defaults."""
    import tomllib

    data = tomllib.loads(path.read_text(encoding="utf-8"))
    defaults = EnginePolicy()

    gates = _coerce_dict(data.get("gates"))
    min_len = int(gates.get("min_hypothesis_length", defaults.min_hypothesis_length))
    if min_len < 1:
        raise ValueError("gates.min_hypothesis_length must be a positive integer")
    require_locked = gates.get("require_locked_predictions", defaults.require_locked_predictions)
    if not isinstance(require_locked, bool):
        raise ValueError("gates.require_locked_predictions must be a boolean")

    history = _coerce_dict(data.get("history"))
    max_history_raw = int(history.get("max_history", defaults.max_history or 0))
    if max_history_raw < 0:
        raise ValueError("history.max_history must be >= 0")
    max_history = max_history_raw or None

    penalties = dict(DEFAULT_PENALTIES)
    for key, value in _coerce_dict(data.get("penalties")).items():
        if key not in AMENDMENT_TYPES:
            raise ValueError(f"Unknown amendment type in penalties: {key!r}")
        if not isinstance(value, int) or value < 0:
            raise ValueError(f"penalties.{key} must be a non-negative integer")
        penalties[key] = value

    return EnginePolicy(
        min_hypothesis_length=min_len,
        require_locked_predictions=require_locked,
        max_history=max_history,
        amendment_penalties=MappingProxyType(penalties),
    )


def load_home_policy(home: Path) -> EnginePolicy:
    """Load <home>/policy.toml if present, else defaults."""
    policy_path = home / "policy.toml"
    if not policy_path.exists():
        return EnginePolicy()
    return load_policy(policy_path)
