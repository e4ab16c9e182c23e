"""
Blinded model display orders.

Every (user, dataset, case) gets its own permutation of the model identifiers,
so a rater can never learn that a given model always sits in slot A. Slot
labels depend only on position.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from rad_rater.sampler import seeded_permutation
from rad_rater.seeding import SeedContext


def build_blinded_order(
    user_id: str,
    scope: str,
    case_id: str,
    model_ids: Sequence[str],
) -> List[str]:
    """
    Seeded full permutation of the model identifiers for one case.

    Args:
        user_id: Rater id
        scope: Dataset key the case belongs to
        case_id: Case identifier
        model_ids: The fixed set of model identifiers, in configuration order

    Returns:
        The model identifiers in display order
    """
    context = SeedContext.model_order(user_id, scope, case_id)
    order = seeded_permutation(len(model_ids), context)
    return [model_ids[i] for i in order]


def slot_label(position: int) -> str:
    """
    Display label for a slot position: 0 -> "A", 25 -> "Z", 26 -> "AA".
    """
    if position < 0:
        raise ValueError(f"Slot position must be non-negative, got {position}")
    label = ""
    n = position + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        label = chr(ord("A") + rem) + label
    return label


def blinded_slots(order: Sequence[str]) -> List[Tuple[str, str]]:
    """Pair each model in display order with its slot label."""
    return [(slot_label(i), model_id) for i, model_id in enumerate(order)]


def label_map(order: Sequence[str]) -> Dict[str, str]:
    """Map model id -> slot label for a display order."""
    return {model_id: label for label, model_id in blinded_slots(order)}
