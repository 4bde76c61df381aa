"""
Commitment hashing for locked predictions.

The seal is a sha256 over the canonical JSON form of a versioned record. Any
change to the text, the lock timestamp or an identifying field changes the
digest.
"""

from __future__ import annotations

import hashlib
import json
import re
import unicodedata
from datetime import datetime
from typing import Any


SEAL_VERSION = "BRENNER_LOCK_v1"

_HASH_RE = re.compile(r"^[0-9a-f]{64}$")


def normalize_text(text: str) -> str:
    """Strip surrounding whitespace and NFC-normalize."""
    return unicodedata.normalize("NFC", text.strip())


def canonical_json(content: dict[str, Any]) -> str:
    return json.dumps(content, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def seal_record(
    hypothesis_id: str,
    prediction_type: str,
    original_index: int,
    original_text: str,
    lock_timestamp: datetime,
) -> dict[str, Any]:
    return {
        "seal": SEAL_VERSION,
        "hypothesis_id": hypothesis_id,
        "prediction_type": prediction_type,
        "original_index": int(original_index),
        "original_text": original_text,
        "lock_timestamp": lock_timestamp.isoformat(),
    }


def compute_lock_hash(
    hypothesis_id: str,
    prediction_type: str,
    original_index: int,
    original_text: str,
    lock_timestamp: datetime,
) -> str:
    """
    Compute the lock hash for a prediction.

    The text is hashed exactly as stored; normalization happens once, at lock
    time, so a later whitespace edit is still detected.
    """
    record = seal_record(hypothesis_id, prediction_type, original_index, original_text, lock_timestamp)
    return hashlib.sha256(canonical_json(record).encode("utf-8")).hexdigest()


def is_well_formed_hash(value: object) -> bool:
    return isinstance(value, str) and bool(_HASH_RE.match(value))


def short_hash(value: str) -> str:
    return value[:8]
