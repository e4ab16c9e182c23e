# Response models package

from rad_rater.response_models.answer import Answer, DataQualityAnswer, ModelScoreAnswer
from rad_rater.response_models.case import Case
from rad_rater.response_models.export import (
    ExportCaseRef,
    ExportDocument,
    ExportPhase,
    ExportScope,
    ModelMapEntry,
)
from rad_rater.response_models.session import (
    SCHEMA_VERSION,
    Audit,
    PhaseState,
    PhaseTransition,
    Position,
    RaterSession,
    ScopeState,
    SessionConfig,
    UserInfo,
)
from rad_rater.response_models.status import PhaseKind, SessionStatus

__all__ = [
    'Answer',
    'DataQualityAnswer',
    'ModelScoreAnswer',
    'Case',
    'ExportCaseRef',
    'ExportDocument',
    'ExportPhase',
    'ExportScope',
    'ModelMapEntry',
    'SCHEMA_VERSION',
    'Audit',
    'PhaseState',
    'PhaseTransition',
    'Position',
    'RaterSession',
    'ScopeState',
    'SessionConfig',
    'UserInfo',
    'PhaseKind',
    'SessionStatus',
]
