"""
Seeded pseudo-random number generator (mulberry32).

All arithmetic is done on unsigned 32-bit integers so the float sequence is
bit-identical to the JavaScript implementation (Math.imul / >>> semantics).
"""

from __future__ import annotations

from typing import Callable

UINT32_MASK = 0xFFFFFFFF
INCREMENT = 0x6D2B79F5
TWO_POW_32 = 4294967296


def _imul(a: int, b: int) -> int:
    """32-bit multiply keeping the low 32 bits (unsigned)."""
    return (a * b) & UINT32_MASK


class Mulberry32:
    """
    Stateful mulberry32 generator.

    Calling the instance advances the state and returns a float in [0, 1).
    """

    def __init__(self, seed: int):
        self._state = seed & UINT32_MASK

    @property
    def state(self) -> int:
        return self._state

    def next_uint32(self) -> int:
        self._state = (self._state + INCREMENT) & UINT32_MASK
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & UINT32_MASK
        return (t ^ (t >> 14)) & UINT32_MASK

    def random(self) -> float:
        return self.next_uint32() / TWO_POW_32

    def __call__(self) -> float:
        return self.random()


def make_generator(seed: int) -> Callable[[], float]:
    """Build a generator closure for the given 32-bit seed."""
    return Mulberry32(seed)
