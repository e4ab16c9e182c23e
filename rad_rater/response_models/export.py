"""
Export Document Models

The export is a read-only snapshot of a session: who rated, with which
configuration, which case ids were shown per dataset, and every answer.
"""

from pydantic import BaseModel, Field
from typing import Dict, List

from rad_rater.response_models.answer import Answer
from rad_rater.response_models.session import Audit, SessionConfig, UserInfo
from rad_rater.response_models.status import PhaseKind, SessionStatus


class ModelMapEntry(BaseModel):
    column: str
    display: str


class ExportCaseRef(BaseModel):
    id: str


class ExportScope(BaseModel):
    cases: List[ExportCaseRef] = Field(default_factory=list)
    answers: Dict[str, Answer] = Field(default_factory=dict)
    model_orders: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Case id -> model ids in the blinded order the rater saw"
    )


class ExportPhase(BaseModel):
    kind: PhaseKind
    datasets: Dict[str, ExportScope] = Field(default_factory=dict)


class ExportDocument(BaseModel):
    exported_at: str
    version: int
    user: UserInfo
    config: SessionConfig
    status: SessionStatus
    audit: Audit
    model_map: Dict[str, ModelMapEntry] = Field(default_factory=dict)
    phases: Dict[str, ExportPhase] = Field(default_factory=dict)
