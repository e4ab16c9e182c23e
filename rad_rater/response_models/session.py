"""
Rater Session Models

The session is the root aggregate persisted per rater: user identity,
configuration, the sampled cases of every phase, cursors, answers and an
audit trail of phase transitions.
"""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from rad_rater.response_models.answer import Answer
from rad_rater.response_models.case import Case
from rad_rater.response_models.status import PhaseKind, SessionStatus

SCHEMA_VERSION = 4


class UserInfo(BaseModel):
    id: str
    meta: str = ""
    created_at: str


class SessionConfig(BaseModel):
    sample_size_per_dataset: int


class PhaseTransition(BaseModel):
    """One fired status transition."""
    from_status: SessionStatus
    to_status: SessionStatus
    at: str


class Audit(BaseModel):
    last_saved_at: Optional[str] = None
    save_count: int = 0
    transitions: List[PhaseTransition] = Field(default_factory=list)


class Position(BaseModel):
    """Phase and dataset scope the rater is currently looking at."""
    phase: str
    scope: str


class ScopeState(BaseModel):
    """Cases, cursor and answers of one dataset within a phase."""
    key: str
    cases: List[Case] = Field(default_factory=list)
    cursor: int = 0
    answers: Dict[str, Answer] = Field(default_factory=dict)

    @property
    def case_count(self) -> int:
        return len(self.cases)

    @property
    def answer_count(self) -> int:
        return len(self.answers)

    @property
    def is_complete(self) -> bool:
        return self.answer_count >= self.case_count

    def case_ids(self) -> List[str]:
        return [c.id for c in self.cases]

    def index_of(self, case_id: str) -> Optional[int]:
        for i, case in enumerate(self.cases):
            if case.id == case_id:
                return i
        return None

    def first_unanswered_index(self) -> Optional[int]:
        for i, case in enumerate(self.cases):
            if case.id not in self.answers:
                return i
        return None


class PhaseState(BaseModel):
    """One sequential stage of the workflow, holding its dataset scopes in order."""
    key: str
    kind: PhaseKind
    scopes: List[ScopeState] = Field(default_factory=list)
    completed_at: Optional[str] = None

    @property
    def case_count(self) -> int:
        return sum(s.case_count for s in self.scopes)

    @property
    def answer_count(self) -> int:
        return sum(s.answer_count for s in self.scopes)

    @property
    def is_complete(self) -> bool:
        return all(s.is_complete for s in self.scopes)

    def scope(self, key: str) -> Optional[ScopeState]:
        for s in self.scopes:
            if s.key == key:
                return s
        return None

    def first_incomplete_scope(self) -> Optional[ScopeState]:
        for s in self.scopes:
            if not s.is_complete:
                return s
        return None


class RaterSession(BaseModel):
    """Complete persisted state of one rater."""
    version: int = SCHEMA_VERSION
    user: UserInfo
    config: SessionConfig
    status: SessionStatus = SessionStatus.NEW
    position: Optional[Position] = None
    phases: List[PhaseState] = Field(default_factory=list)
    audit: Audit = Field(default_factory=Audit)

    @property
    def user_id(self) -> str:
        return self.user.id

    def phase(self, key: str) -> Optional[PhaseState]:
        for p in self.phases:
            if p.key == key:
                return p
        return None

    def phase_index(self, key: str) -> Optional[int]:
        for i, p in enumerate(self.phases):
            if p.key == key:
                return i
        return None

    def has_cases(self) -> bool:
        return any(s.cases for p in self.phases for s in p.scopes)
