"""
Prediction locking (commit-reveal-amend).

Predictions are hashed and frozen before evidence is seen. verify_lock()
recomputes the seal so that any later edit of the committed text is visible.
"""

from .prediction import (
    Amendment,
    LockedPrediction,
    LockStats,
    amend_prediction,
    create_draft,
    edit_draft,
    lock_prediction,
    lock_stats,
    penalty_list,
    reveal_prediction,
    robustness_multiplier,
    verify_lock,
)
from .seal import compute_lock_hash, is_well_formed_hash

__all__ = [
    "Amendment",
    "LockedPrediction",
    "LockStats",
    "amend_prediction",
    "create_draft",
    "edit_draft",
    "lock_prediction",
    "lock_stats",
    "penalty_list",
    "reveal_prediction",
    "robustness_multiplier",
    "verify_lock",
    "compute_lock_hash",
    "is_well_formed_hash",
]
