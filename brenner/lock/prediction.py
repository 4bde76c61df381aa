"""
Pre-registration lock: predictions sealed before evidence is seen.

Lifecycle: draft -> locked -> revealed -> amended (amended repeats, each
amendment appends). Once a prediction leaves draft, original_text and
lock_hash are frozen; amendments are layered on top and carry a credibility
penalty.

All functions here are pure: they take a LockedPrediction and return a new
one (dataclasses.replace), never mutating their input.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Iterable, Literal

from ..config import AMENDMENT_TYPES, DEFAULT_PENALTIES
from ..errors import EmptyTextError, InvalidStateError
from ..util import isoformat, parse_datetime
from .seal import compute_lock_hash, normalize_text

logger = logging.getLogger(__name__)

PredictionType = Literal["if_true", "if_false", "impossible_if_true"]
LockState = Literal["draft", "locked", "revealed", "amended"]
OutcomeMatch = Literal["confirmed", "refuted", "inconclusive"]
AmendmentType = Literal["clarification", "reinterpretation", "scope_change", "retraction"]

PREDICTION_TYPES = frozenset({"if_true", "if_false", "impossible_if_true"})
LOCK_STATES = frozenset({"draft", "locked", "revealed", "amended"})
OUTCOME_MATCHES = frozenset({"confirmed", "refuted", "inconclusive"})

_TYPE_CODES = {"if_true": "T", "if_false": "F", "impossible_if_true": "I"}


@dataclass(frozen=True)
class Amendment:
    """A post-evidence note. Never replaces the original prediction."""

    type: str
    text: str
    timestamp: datetime
    credibility_penalty: int
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "text": self.text,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
            "credibility_penalty": self.credibility_penalty,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Amendment:
        return cls(
            type=data["type"],
            text=data["text"],
            reason=data.get("reason"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            credibility_penalty=int(data.get("credibility_penalty", 0)),
        )


@dataclass(frozen=True)
class LockedPrediction:
    id: str
    hypothesis_id: str
    prediction_type: str
    original_index: int
    original_text: str
    state: str = "draft"
    lock_timestamp: datetime | None = None
    lock_hash: str = ""
    revealed_at: datetime | None = None
    observed_outcome: str | None = None
    outcome_match: str | None = None
    amendments: tuple[Amendment, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.prediction_type not in PREDICTION_TYPES:
            raise ValueError(f"Invalid prediction_type: {self.prediction_type}")
        if self.state not in LOCK_STATES:
            raise ValueError(f"Invalid lock state: {self.state}")

    @property
    def key(self) -> tuple[str, str, int]:
        """(hypothesis_id, prediction_type, original_index) identifies the slot."""
        return (self.hypothesis_id, self.prediction_type, self.original_index)

    @property
    def is_sealed(self) -> bool:
        return self.state != "draft"

    @property
    def total_penalty(self) -> int:
        return sum(a.credibility_penalty for a in self.amendments)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "hypothesis_id": self.hypothesis_id,
            "prediction_type": self.prediction_type,
            "original_index": self.original_index,
            "original_text": self.original_text,
            "state": self.state,
            "lock_timestamp": isoformat(self.lock_timestamp),
            "lock_hash": self.lock_hash,
            "revealed_at": isoformat(self.revealed_at),
            "observed_outcome": self.observed_outcome,
            "outcome_match": self.outcome_match,
            "amendments": [a.to_dict() for a in self.amendments],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LockedPrediction:
        return cls(
            id=data["id"],
            hypothesis_id=data["hypothesis_id"],
            prediction_type=data["prediction_type"],
            original_index=int(data["original_index"]),
            original_text=data.get("original_text", ""),
            state=data.get("state", "draft"),
            lock_timestamp=parse_datetime(data.get("lock_timestamp")),
            lock_hash=data.get("lock_hash") or "",
            revealed_at=parse_datetime(data.get("revealed_at")),
            observed_outcome=data.get("observed_outcome"),
            outcome_match=data.get("outcome_match"),
            amendments=tuple(Amendment.from_dict(a) for a in data.get("amendments", [])),
        )


def prediction_lock_prefix(hypothesis_id: str, prediction_type: str, index: int) -> str:
    """Id prefix PL-{hypothesis}-{T|F|I}{index}; the id generator adds a suffix."""
    code = _TYPE_CODES.get(prediction_type, "X")
    return f"PL-{hypothesis_id}-{code}{index}"


# -----------------------------------------------------------------------------
# Lifecycle
# -----------------------------------------------------------------------------


def create_draft(
    hypothesis_id: str,
    prediction_type: str,
    original_index: int,
    text: str,
    *,
    prediction_id: str,
) -> LockedPrediction:
    return LockedPrediction(
        id=prediction_id,
        hypothesis_id=hypothesis_id,
        prediction_type=prediction_type,
        original_index=original_index,
        original_text=text,
    )


def edit_draft(prediction: LockedPrediction, text: str) -> LockedPrediction:
    if prediction.state != "draft":
        raise InvalidStateError(f"Prediction {prediction.id} is {prediction.state}; only drafts can be edited")
    return replace(prediction, original_text=text)


def lock_prediction(
    hypothesis_id: str,
    prediction_type: str,
    original_index: int,
    text: str,
    *,
    timestamp: datetime,
    prediction_id: str,
    draft: LockedPrediction | None = None,
) -> LockedPrediction:
    """
    Seal a prediction before evidence is collected.

    This is the only place original_text is set on a sealed prediction.

    Args:
        hypothesis_id: Owning hypothesis (weak reference into the artifact slate)
        prediction_type: if_true | if_false | impossible_if_true
        original_index: Position in the hypothesis' prediction list
        text: Prediction text, normalized before sealing
        timestamp: Lock time, part of the hash
        prediction_id: Id for a new prediction (ignored when `draft` is given)
        draft: Existing draft being sealed

    Returns:
        A new LockedPrediction in state "locked"
    """
    if draft is not None and draft.state != "draft":
        raise InvalidStateError(f"Prediction {draft.id} is already {draft.state}")
    if prediction_type not in PREDICTION_TYPES:
        raise ValueError(f"Invalid prediction_type: {prediction_type}")
    if not text or not text.strip():
        raise EmptyTextError("Prediction text cannot be empty")

    normalized = normalize_text(text)
    lock_hash = compute_lock_hash(hypothesis_id, prediction_type, original_index, normalized, timestamp)

    return LockedPrediction(
        id=draft.id if draft is not None else prediction_id,
        hypothesis_id=hypothesis_id,
        prediction_type=prediction_type,
        original_index=original_index,
        original_text=normalized,
        state="locked",
        lock_timestamp=timestamp,
        lock_hash=lock_hash,
    )


def reveal_prediction(
    prediction: LockedPrediction,
    observed_outcome: str,
    outcome_match: str,
    *,
    timestamp: datetime,
) -> LockedPrediction:
    if prediction.state != "locked":
        if prediction.state == "draft":
            raise InvalidStateError("Cannot reveal a draft prediction - it must be locked first")
        raise InvalidStateError(f"Prediction {prediction.id} has already been revealed")
    if outcome_match not in OUTCOME_MATCHES:
        raise ValueError(f"Invalid outcome_match: {outcome_match}")

    return replace(
        prediction,
        state="revealed",
        revealed_at=timestamp,
        observed_outcome=observed_outcome,
        outcome_match=outcome_match,
    )


def amend_prediction(
    prediction: LockedPrediction,
    amendment_type: str,
    text: str,
    reason: str | None = None,
    *,
    timestamp: datetime,
    penalty: int | None = None,
) -> LockedPrediction:
    """
    Append an amendment to a revealed prediction.

    An empty reason is accepted here; requiring one is the caller's policy.
    `penalty` overrides the default penalty for `amendment_type`.
    """
    if prediction.state not in {"revealed", "amended"}:
        raise InvalidStateError("Cannot amend a prediction that has not been revealed")
    if amendment_type not in AMENDMENT_TYPES:
        raise ValueError(f"Unknown amendment type: {amendment_type!r}")
    if not text or not text.strip():
        raise EmptyTextError("Amendment text cannot be empty")

    amendment = Amendment(
        type=amendment_type,
        text=text.strip(),
        reason=reason,
        timestamp=timestamp,
        credibility_penalty=DEFAULT_PENALTIES[amendment_type] if penalty is None else int(penalty),
    )
    return replace(prediction, state="amended", amendments=prediction.amendments + (amendment,))


def verify_lock(prediction: LockedPrediction) -> bool:
    """
    Recompute the lock hash from stored fields and compare.

    Drafts have nothing sealed and verify as True. A False result means the
    stored text, timestamp or identity no longer matches what was committed.
    """
    if prediction.state == "draft":
        return True
    if prediction.lock_timestamp is None or not prediction.lock_hash:
        return False

    computed = compute_lock_hash(
        prediction.hypothesis_id,
        prediction.prediction_type,
        prediction.original_index,
        prediction.original_text,
        prediction.lock_timestamp,
    )
    valid = computed == prediction.lock_hash
    if not valid:
        logger.warning("Lock hash mismatch for prediction %s", prediction.id)
    return valid


# -----------------------------------------------------------------------------
# Statistics
# -----------------------------------------------------------------------------


@dataclass
class LockStats:
    total: int = 0
    draft: int = 0
    locked: int = 0
    revealed: int = 0
    amended: int = 0
    confirmed: int = 0
    refuted: int = 0
    inconclusive: int = 0
    amendment_count: int = 0
    total_penalty: int = 0

    @property
    def integrity_score(self) -> int:
        return max(0, 100 - self.total_penalty)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "draft": self.draft,
            "locked": self.locked,
            "revealed": self.revealed,
            "amended": self.amended,
            "confirmed": self.confirmed,
            "refuted": self.refuted,
            "inconclusive": self.inconclusive,
            "amendment_count": self.amendment_count,
            "total_penalty": self.total_penalty,
            "integrity_score": self.integrity_score,
        }


def penalty_list(predictions: Iterable[LockedPrediction], hypothesis_id: str | None = None) -> list[int]:
    """Raw credibility penalties, in amendment order, for an external scorer."""
    return [
        a.credibility_penalty
        for p in predictions
        if hypothesis_id is None or p.hypothesis_id == hypothesis_id
        for a in p.amendments
    ]


def lock_stats(predictions: Iterable[LockedPrediction]) -> LockStats:
    stats = LockStats()
    for p in predictions:
        stats.total += 1
        setattr(stats, p.state, getattr(stats, p.state) + 1)
        if p.outcome_match in OUTCOME_MATCHES:
            setattr(stats, p.outcome_match, getattr(stats, p.outcome_match) + 1)
        stats.amendment_count += len(p.amendments)
        stats.total_penalty += p.total_penalty
    return stats


def robustness_multiplier(stats: LockStats) -> float:
    """Multiplier in [0.5, 1.0]: penalizes unsealed predictions and amendments."""
    if stats.total == 0:
        return 1.0
    sealed_ratio = (stats.locked + stats.revealed + stats.amended) / stats.total
    multiplier = (0.5 + 0.5 * sealed_ratio) * (0.5 + 0.5 * stats.integrity_score / 100)
    return max(0.5, min(1.0, multiplier))
