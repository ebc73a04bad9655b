"""Deterministic pseudo-random stream (Mulberry32).

All arithmetic is masked to 32 bits so two generators started from the same
seed agree draw for draw on every platform.
"""
from __future__ import annotations

MASK32 = 0xFFFFFFFF
GOLDEN_STEP = 0x6D2B79F5


def _imul(a: int, b: int) -> int:
    return (a * b) & MASK32


def to_int32(value: int) -> int:
    value &= MASK32
    return value - 0x100000000 if value & 0x80000000 else value


class Mulberry32:
    def __init__(self, seed: int) -> None:
        self._state = seed & MASK32

    def next(self) -> float:
        """Advance the stream and return a value in ``[0, 1)``."""
        self._state = (self._state + GOLDEN_STEP) & MASK32
        s = self._state
        t = _imul(s ^ (s >> 15), 1 | s)
        t = ((t + _imul(t ^ (t >> 7), 61 | t)) & MASK32) ^ t
        return (t ^ (t >> 14)) / 4294967296

    def seed(self) -> int:
        """Current internal state as a signed 32-bit integer, for persistence."""
        return to_int32(self._state)
