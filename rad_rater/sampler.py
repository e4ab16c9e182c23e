"""
Seeded Fisher-Yates sampling.

The same seed key and the same input collection always produce the same
subset in the same order, which is what keeps a rater's case set stable
across logins and devices.
"""

from __future__ import annotations

import math
from typing import List, Sequence, TypeVar, Union

from rad_rater.prng import make_generator
from rad_rater.seeding import SeedContext, derive_seed

T = TypeVar("T")

SeedKey = Union[str, SeedContext]


def _seed_from(seed_key: SeedKey) -> int:
    if isinstance(seed_key, SeedContext):
        return seed_key.seed()
    return derive_seed(seed_key)


def seeded_permutation(length: int, seed_key: SeedKey) -> List[int]:
    """
    Shuffle the indices 0..length-1 with a seeded Fisher-Yates pass.

    Iterates i from length-1 down to 1 and swaps i with
    floor(rnd() * (i + 1)).

    Args:
        length: Number of indices to permute
        seed_key: Seed key string or SeedContext

    Returns:
        Shuffled list of indices
    """
    rnd = make_generator(_seed_from(seed_key))
    idx = list(range(max(length, 0)))
    for i in range(len(idx) - 1, 0, -1):
        j = math.floor(rnd() * (i + 1))
        idx[i], idx[j] = idx[j], idx[i]
    return idx


def seeded_sample(items: Sequence[T], n: int, seed_key: SeedKey) -> List[T]:
    """
    Select min(n, len(items)) items without replacement.

    Args:
        items: Collection to sample from
        n: Requested sample size (n <= 0 returns an empty list)
        seed_key: Seed key string or SeedContext

    Returns:
        The sampled items, in shuffle order
    """
    if n <= 0:
        return []
    order = seeded_permutation(len(items), seed_key)
    return [items[i] for i in order[:min(n, len(order))]]
