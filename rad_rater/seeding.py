"""
Deterministic Seed Derivation

Maps semantic seed keys (e.g. "alice::rexgradient::sample") to 32-bit PRNG
seeds. The hash is FNV-1a over UTF-16 code units so that seeds match the ones
produced by the browser version of the rater for the same user and dataset.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
UINT32_MASK = 0xFFFFFFFF

SEPARATOR = "::"


def _utf16_code_units(text: str):
    data = text.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def derive_seed(key: str) -> int:
    """
    Derive an unsigned 32-bit seed from a string key.

    Each UTF-16 code unit is XORed into the accumulator, which is then
    multiplied by the FNV prime keeping only the low 32 bits.

    Args:
        key: Semantic seed key

    Returns:
        Integer in [0, 2**32)

    Example:
        >>> derive_seed("")
        2166136261
    """
    h = FNV_OFFSET_BASIS
    for unit in _utf16_code_units(key):
        h ^= unit
        h = (h * FNV_PRIME) & UINT32_MASK
    return h


# Name used by the browser implementation
stable_hash = derive_seed


class SeedPurpose(str, Enum):
    """What a derived seed is used for; rendered as the key's trailing tag."""

    SAMPLE = "sample"
    MODEL_ORDER = "modelorder"

    def __str__(self) -> str:
        return self.value


def _escape(field: str) -> str:
    return field.replace("\\", "\\\\").replace(":", "\\:")


@dataclass(frozen=True)
class SeedContext:
    """
    Typed builder for seed keys.

    Renders to ``user::scope::sample`` for case sampling and
    ``user::scope::case::modelorder`` for blinding orders. Backslashes and
    colons inside fields are escaped, so two different contexts can never
    render to the same key.
    """

    purpose: SeedPurpose
    user_id: str
    scope: str
    case_id: Optional[str] = None

    def __post_init__(self):
        if self.purpose is SeedPurpose.MODEL_ORDER and self.case_id is None:
            raise ValueError("A model-order seed context needs a case_id")
        if self.purpose is SeedPurpose.SAMPLE and self.case_id is not None:
            raise ValueError("A sample seed context does not take a case_id")

    @classmethod
    def sample(cls, user_id: str, scope: str) -> "SeedContext":
        return cls(SeedPurpose.SAMPLE, user_id, scope)

    @classmethod
    def model_order(cls, user_id: str, scope: str, case_id: str) -> "SeedContext":
        return cls(SeedPurpose.MODEL_ORDER, user_id, scope, case_id)

    def key(self) -> str:
        fields = [self.user_id, self.scope]
        if self.case_id is not None:
            fields.append(self.case_id)
        fields = [_escape(str(f)) for f in fields]
        fields.append(self.purpose.value)
        return SEPARATOR.join(fields)

    def seed(self) -> int:
        return derive_seed(self.key())

    def __str__(self) -> str:
        return self.key()
