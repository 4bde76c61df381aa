"""
Small utilities shared by the session engine.

Clocks and id generators are injected rather than read from globals so that
tests can supply deterministic timestamps and ids.
"""

from __future__ import annotations

import os
import time
from datetime import datetime, timedelta, timezone
from typing import Protocol


_CROCKFORD32 = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def _encode_crockford_base32(value: int, length: int) -> str:
    chars: list[str] = []
    for _ in range(length):
        chars.append(_CROCKFORD32[value & 31])
        value >>= 5
    return "".join(reversed(chars))


def new_ulid(*, timestamp_ms: int | None = None) -> str:
    """
    Generate a ULID (26 chars, Crockford base32).

    ULID = 48-bit millisecond timestamp + 80-bit randomness.
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)

    if not (0 <= timestamp_ms < (1 << 48)):
        raise ValueError("timestamp_ms out of range for ULID")

    randomness = int.from_bytes(os.urandom(10), "big")
    value = (timestamp_ms << 80) | randomness
    return _encode_crockford_base32(value, 26)


# -----------------------------------------------------------------------------
# Clocks
# -----------------------------------------------------------------------------


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """
    Wall clock in UTC, never moving backwards within one instance.

    `floor` seeds the guard, typically with the last timestamp already stored.
    """

    def __init__(self, floor: datetime | None = None) -> None:
        self._last: datetime | None = floor

    def now(self) -> datetime:
        current = datetime.now(timezone.utc)
        if self._last is not None and current < self._last:
            current = self._last
        self._last = current
        return current


class ManualClock:
    """Clock that only moves when told to. Each now() call ticks by `step`."""

    def __init__(self, start: datetime | None = None, *, step: timedelta = timedelta(seconds=1)):
        self._current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._step = step

    def now(self) -> datetime:
        value = self._current
        self._current = self._current + self._step
        return value

    def advance(self, delta: timedelta) -> None:
        self._current = self._current + delta


# -----------------------------------------------------------------------------
# Id generators
# -----------------------------------------------------------------------------


class IdGenerator(Protocol):
    def next_id(self, prefix: str) -> str:
        ...


class UlidGenerator:
    def next_id(self, prefix: str) -> str:
        return f"{prefix}-{new_ulid()}"


class SequentialIds:
    """Deterministic ids: CMD-0001, CMD-0002, ... (one counter per prefix)."""

    def __init__(self) -> None:
        self._counters: dict[str, int] = {}

    def next_id(self, prefix: str) -> str:
        n = self._counters.get(prefix, 0) + 1
        self._counters[prefix] = n
        return f"{prefix}-{n:04d}"


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def parse_datetime(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None
