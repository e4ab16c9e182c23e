"""
Session / Progress State Machine

Pure functions over an explicit RaterSession. Each operation mutates only the
session it is given and reports what happened through an outcome object; no
I/O, timers or globals are involved, so every transition is unit-testable.

Statuses move forward only:

    NEW -> PHASE_1_ACTIVE -> PHASE_2_ACTIVE -> ALL_COMPLETE

A phase is complete when every one of its scopes has an answer for each of
its cases. Completion is checked after every save, so finishing the last
missing case anywhere in a phase fires the transition right away.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from rad_rater.config import PhaseSpec, ScoringSpec
from rad_rater.errors import ValidationError
from rad_rater.response_models.answer import Answer, DataQualityAnswer, ModelScoreAnswer
from rad_rater.response_models.case import Case
from rad_rater.response_models.session import (
    PhaseState,
    PhaseTransition,
    Position,
    RaterSession,
    ScopeState,
    SessionConfig,
    UserInfo,
)
from rad_rater.response_models.status import PhaseKind, SessionStatus

logger = logging.getLogger(__name__)

Clock = Callable[[], str]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SaveOutcome:
    """Result of a successful record_answer call."""
    session: RaterSession
    answer: Answer
    transitions: List[PhaseTransition] = field(default_factory=list)
    advanced: bool = False
    moved_scope: bool = False

    @property
    def all_complete(self) -> bool:
        return self.session.status == SessionStatus.ALL_COMPLETE


@dataclass
class NavigationOutcome:
    session: RaterSession
    moved: bool
    message: str = ""


@dataclass
class Progress:
    done: int
    total: int
    scope_done: int
    scope_total: int
    phases: Dict[str, Tuple[int, int]] = field(default_factory=dict)

    @property
    def percent(self) -> int:
        return round(100 * self.done / self.total) if self.total else 0

    def describe(self) -> str:
        return f"{self.done}/{self.total} (this dataset: {self.scope_done}/{self.scope_total})"


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

def new_session(
    user_id: str,
    sample_size: int,
    phase_specs: Sequence[PhaseSpec],
    meta: str = "",
    now: Clock = now_iso,
) -> RaterSession:
    """Create an empty session laid out for the configured phases."""
    session = RaterSession(
        user=UserInfo(id=user_id, meta=meta, created_at=now()),
        config=SessionConfig(sample_size_per_dataset=sample_size),
    )
    reconcile_layout(session, phase_specs)
    return session


def reconcile_layout(session: RaterSession, phase_specs: Sequence[PhaseSpec]) -> RaterSession:
    """
    Align the session's phases and scopes with the configured layout.

    Missing phases/scopes are added empty (to be sampled later). Stored phases
    are matched by key, then by kind. Scopes no longer configured are kept
    after the configured ones so that no recorded answer is ever dropped.
    """
    remaining = list(session.phases)
    ordered: List[PhaseState] = []

    for phase_spec in phase_specs:
        phase = next((p for p in remaining if p.key == phase_spec.key), None)
        if phase is None:
            phase = next((p for p in remaining if p.kind == phase_spec.kind), None)
        if phase is None:
            phase = PhaseState(key=phase_spec.key, kind=phase_spec.kind)
        else:
            remaining = [p for p in remaining if p is not phase]
            phase.key = phase_spec.key

        scopes = []
        for dataset in phase_spec.datasets:
            scopes.append(phase.scope(dataset.key) or ScopeState(key=dataset.key))
        configured = {d.key for d in phase_spec.datasets}
        extra = [s for s in phase.scopes if s.key not in configured]
        for s in extra:
            logger.warning("Keeping scope %r of phase %r that is no longer configured", s.key, phase_spec.key)
        phase.scopes = scopes + extra
        ordered.append(phase)

    for p in remaining:
        logger.warning("Keeping phase %r that is no longer configured", p.key)
    session.phases = ordered + remaining

    if session.position is not None and _resolve(session, session.position) is None:
        session.position = None
    return session


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def _resolve(session: RaterSession, position: Position) -> Optional[Tuple[PhaseState, ScopeState]]:
    phase = session.phase(position.phase)
    if phase is None:
        return None
    scope = phase.scope(position.scope)
    if scope is None:
        return None
    return phase, scope


def active_phase_index(session: RaterSession) -> Optional[int]:
    """Index of the phase the status points at, or None when NEW / ALL_COMPLETE."""
    if session.status == SessionStatus.PHASE_1_ACTIVE:
        return 0
    if session.status == SessionStatus.PHASE_2_ACTIVE:
        return 1
    return None


def active_phase(session: RaterSession) -> Optional[PhaseState]:
    idx = active_phase_index(session)
    if idx is None or idx >= len(session.phases):
        return None
    return session.phases[idx]


def current_phase(session: RaterSession) -> Optional[PhaseState]:
    if session.position is None:
        return None
    resolved = _resolve(session, session.position)
    return resolved[0] if resolved else None


def current_scope(session: RaterSession) -> Optional[ScopeState]:
    if session.position is None:
        return None
    resolved = _resolve(session, session.position)
    return resolved[1] if resolved else None


def clamp_cursor(scope: ScopeState) -> int:
    """Clamp the scope's cursor to [0, case_count - 1] (0 when empty)."""
    if scope.case_count == 0:
        scope.cursor = 0
    else:
        scope.cursor = min(max(scope.cursor, 0), scope.case_count - 1)
    return scope.cursor


def current_case(session: RaterSession) -> Optional[Case]:
    scope = current_scope(session)
    if scope is None or not scope.cases:
        return None
    return scope.cases[clamp_cursor(scope)]


def progress(session: RaterSession) -> Progress:
    """Answered/total counts overall, per phase and for the current scope."""
    phases = {p.key: (p.answer_count, p.case_count) for p in session.phases}
    scope = current_scope(session)
    return Progress(
        done=sum(d for d, _ in phases.values()),
        total=sum(t for _, t in phases.values()),
        scope_done=scope.answer_count if scope else 0,
        scope_total=scope.case_count if scope else 0,
        phases=phases,
    )


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def _position_at_pending_work(session: RaterSession, phase: PhaseState) -> bool:
    """Point the session at the first unanswered case of `phase`."""
    scope = phase.first_incomplete_scope()
    if scope is None:
        return False
    session.position = Position(phase=phase.key, scope=scope.key)
    first = scope.first_unanswered_index()
    scope.cursor = first if first is not None else clamp_cursor(scope)
    return True


def ensure_position(session: RaterSession) -> RaterSession:
    """Give the session a valid position if it has none."""
    if session.position is not None and _resolve(session, session.position) is not None:
        clamp_cursor(current_scope(session))
        return session

    phase = active_phase(session)
    if phase is not None and _position_at_pending_work(session, phase):
        return session

    # All complete (or nothing to do): show the last scope that has cases
    for p in reversed(session.phases):
        for s in reversed(p.scopes):
            if s.cases:
                session.position = Position(phase=p.key, scope=s.key)
                clamp_cursor(s)
                return session

    if session.phases and session.phases[0].scopes:
        first = session.phases[0]
        session.position = Position(phase=first.key, scope=first.scopes[0].key)
    return session


def _fire(session: RaterSession, to_status: SessionStatus, at: str) -> PhaseTransition:
    if to_status.rank <= session.status.rank:
        raise ValueError(f"Status cannot move from {session.status} to {to_status}")
    transition = PhaseTransition(from_status=session.status, to_status=to_status, at=at)
    session.status = to_status
    session.audit.transitions.append(transition)
    logger.info("Session %s: %s -> %s", session.user_id, transition.from_status, to_status)
    return transition


def settle_status(session: RaterSession, now: Optional[str] = None) -> List[PhaseTransition]:
    """
    Fire every transition whose phase is complete.

    Each transition fires once: the status moves past the completed phase and
    is never moved back. When anything fired, the session is repositioned at
    the first unanswered case of the newly active phase.

    Returns:
        The transitions fired by this call (possibly empty)
    """
    at = now or now_iso()
    fired: List[PhaseTransition] = []
    while True:
        idx = active_phase_index(session)
        if idx is None:
            break
        phase = session.phases[idx] if idx < len(session.phases) else None
        if phase is not None:
            if not phase.is_complete:
                break
            phase.completed_at = phase.completed_at or at
        fired.append(_fire(session, SessionStatus.for_phase_index(idx + 1), at))

    if fired:
        phase = active_phase(session)
        if phase is None or not _position_at_pending_work(session, phase):
            ensure_position(session)
    return fired


def activate(session: RaterSession, now: Clock = now_iso) -> List[PhaseTransition]:
    """
    Start (or resume) a session: NEW becomes PHASE_1_ACTIVE and phases that
    are already complete are settled. Call after cases have been sampled.
    """
    at = now()
    fired: List[PhaseTransition] = []
    if session.status == SessionStatus.NEW:
        fired.append(_fire(session, SessionStatus.PHASE_1_ACTIVE, at))
        session.position = None
    fired.extend(settle_status(session, at))
    ensure_position(session)
    return fired


def validate_answer(
    answer: Answer,
    kind: PhaseKind,
    model_ids: Sequence[str],
    scoring: ScoringSpec,
) -> None:
    """
    Check that an answer has every field its phase requires.

    Model-evaluation answers need a score in range for every model; data
    quality answers need both a hardness and a quality level.

    Raises:
        ValidationError: Naming each missing or invalid field
    """
    if answer.kind != kind.value:
        raise ValidationError(["kind"], f"Expected a {kind.value} answer, got {answer.kind}")

    if isinstance(answer, ModelScoreAnswer):
        missing = [f"scores.{m}" for m in model_ids if answer.scores.get(m) is None]
        if missing:
            raise ValidationError(missing)
        invalid = [
            f"scores.{m}" for m, score in answer.scores.items()
            if m not in model_ids or not scoring.score_min <= score <= scoring.score_max
        ]
        if invalid:
            raise ValidationError(
                invalid,
                f"Scores must be between {scoring.score_min} and {scoring.score_max} "
                f"for known models: {', '.join(invalid)}",
            )
        return

    if isinstance(answer, DataQualityAnswer):
        missing = [name for name in ("hardness", "quality") if not getattr(answer, name)]
        if missing:
            raise ValidationError(missing)
        invalid = []
        if answer.hardness not in scoring.hardness_levels:
            invalid.append("hardness")
        if answer.quality not in scoring.quality_levels:
            invalid.append("quality")
        if invalid:
            raise ValidationError(invalid, f"Unknown level for: {', '.join(invalid)}")


def _move_to_pending_work(session: RaterSession) -> bool:
    phase = active_phase(session)
    if phase is None:
        return False
    return _position_at_pending_work(session, phase)


def record_answer(
    session: RaterSession,
    case_id: str,
    answer: Answer,
    *,
    model_ids: Sequence[str],
    scoring: ScoringSpec,
    now: Clock = now_iso,
) -> SaveOutcome:
    """
    Validate and store an answer for a case of the current scope.

    On success the answer is upserted (re-saving a case overwrites it in
    place), phase transitions are checked, and the cursor advances by one; at
    the last case of a scope the session moves on to the next unanswered case
    of the active phase instead.

    Raises:
        ValidationError: If the case is not in the current scope or a
            required field is missing. The session is not modified.
    """
    phase = current_phase(session)
    scope = current_scope(session)
    if phase is None or scope is None:
        raise ValidationError(["case_id"], "No dataset is active in this session")

    idx = scope.index_of(case_id)
    if idx is None:
        raise ValidationError(["case_id"], f"Case {case_id} is not part of dataset {scope.key}")

    validate_answer(answer, phase.kind, model_ids, scoring)

    saved_at = now()
    stored = answer.model_copy(update={"case_id": case_id, "scope": scope.key, "saved_at": saved_at})
    scope.answers[case_id] = stored
    session.audit.last_saved_at = saved_at
    session.audit.save_count += 1

    outcome = SaveOutcome(session=session, answer=stored)
    outcome.transitions = settle_status(session, saved_at)
    if outcome.transitions:
        outcome.moved_scope = True
    elif idx < scope.case_count - 1:
        scope.cursor = idx + 1
        outcome.advanced = True
    else:
        scope.cursor = idx
        outcome.moved_scope = _move_to_pending_work(session)
    return outcome


def go_prev(session: RaterSession) -> NavigationOutcome:
    """
    Step back one case.

    At the first case of a scope this moves to the last case of the previous
    scope; from the first scope of phase 2 it steps back into phase 1. The
    session status is never changed.
    """
    phase = current_phase(session)
    scope = current_scope(session)
    if phase is None or scope is None:
        return NavigationOutcome(session, False, "No active dataset.")

    clamp_cursor(scope)
    if scope.cursor > 0:
        scope.cursor -= 1
        return NavigationOutcome(session, True)

    phase_idx = session.phase_index(phase.key)
    scope_idx = next(i for i, s in enumerate(phase.scopes) if s is scope)

    candidates = [(phase, s) for s in reversed(phase.scopes[:scope_idx])]
    if phase_idx > 0:
        previous = session.phases[phase_idx - 1]
        candidates.extend((previous, s) for s in reversed(previous.scopes))

    for target_phase, target in candidates:
        if target.cases:
            session.position = Position(phase=target_phase.key, scope=target.key)
            target.cursor = target.case_count - 1
            return NavigationOutcome(session, True)

    return NavigationOutcome(session, False, "Already at the first case.")


def select_scope(session: RaterSession, phase_key: str, scope_key: str) -> RaterSession:
    """
    Switch the view to a dataset scope, keeping its stored cursor.

    Raises:
        ValueError: If the phase/scope does not exist or the phase is still locked
    """
    phase = session.phase(phase_key)
    if phase is None:
        raise ValueError(f"Unknown phase: {phase_key}")
    scope = phase.scope(scope_key)
    if scope is None:
        raise ValueError(f"Unknown dataset {scope_key} in phase {phase_key}")

    phase_idx = session.phase_index(phase_key)
    active_idx = active_phase_index(session)
    if session.status == SessionStatus.NEW or (active_idx is not None and phase_idx > active_idx):
        raise ValueError(f"Phase {phase_key} is locked until the previous phase is complete")

    session.position = Position(phase=phase_key, scope=scope_key)
    clamp_cursor(scope)
    return session
