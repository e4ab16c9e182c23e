"""Session status and phase kind enumerations."""

from enum import Enum


class PhaseKind(str, Enum):
    """
    The two kinds of rating phase.

    Attributes:
        DATA_QUALITY: Rater labels case hardness and chain-of-thought quality
        MODEL_EVAL: Rater scores every blinded model output for the case
    """

    DATA_QUALITY = "data_quality"
    MODEL_EVAL = "model_eval"

    def __str__(self) -> str:
        return self.value


class SessionStatus(str, Enum):
    """
    Progression of a rater session.

    Statuses only ever move forward:
    NEW -> PHASE_1_ACTIVE -> PHASE_2_ACTIVE -> ALL_COMPLETE

    Attributes:
        NEW: Session created but not yet started
        PHASE_1_ACTIVE: Data-quality assessment in progress
        PHASE_2_ACTIVE: Model evaluation in progress
        ALL_COMPLETE: Every case of every phase has an answer
    """

    NEW = "new"
    PHASE_1_ACTIVE = "phase_1_active"
    PHASE_2_ACTIVE = "phase_2_active"
    ALL_COMPLETE = "all_complete"

    def __str__(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    @classmethod
    def for_phase_index(cls, index: int) -> "SessionStatus":
        """Status while the phase at `index` (0-based) is the active one."""
        return _STATUS_ORDER[index + 1]


_STATUS_ORDER = [
    SessionStatus.NEW,
    SessionStatus.PHASE_1_ACTIVE,
    SessionStatus.PHASE_2_ACTIVE,
    SessionStatus.ALL_COMPLETE,
]
