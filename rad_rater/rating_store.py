"""
Rating Store Module

Owns the active rater session: starts or resumes it, applies saves and
navigation through the session state machine, and persists after every
mutation. Front-ends (GUI and CLI) talk to this class only.
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional

from rad_rater.blinding import build_blinded_order
from rad_rater.case_loader import CaseLoader
from rad_rater.config import RaterSettings
from rad_rater.errors import SaveInProgressError
from rad_rater.export import build_export, write_export
from rad_rater.persistence import SaveReport, SessionPersistence, build_persistence
from rad_rater.response_models.answer import Answer
from rad_rater.response_models.case import Case
from rad_rater.response_models.export import ExportDocument
from rad_rater.response_models.session import PhaseState, RaterSession, ScopeState
from rad_rater import session_machine
from rad_rater.session_machine import Clock, NavigationOutcome, Progress, SaveOutcome, now_iso

logger = logging.getLogger(__name__)


class RatingStore:
    """
    Manages one rater's session.

    Attributes:
        settings: Validated application settings
        persistence: Session persistence facade
        loader: Case loader used to sample new scopes
        current_session: Currently active session (None before start_session)
        last_report: Outcome of the most recent persist
    """

    def __init__(
        self,
        settings: RaterSettings,
        persistence: Optional[SessionPersistence] = None,
        loader: Optional[CaseLoader] = None,
        now: Clock = now_iso,
    ):
        self.settings = settings
        self.persistence = persistence or build_persistence(settings)
        self.loader = loader or CaseLoader(settings)
        self.now = now
        self.current_session: Optional[RaterSession] = None
        self.last_report: Optional[SaveReport] = None
        self._save_lock = threading.Lock()

    def _require_session(self) -> RaterSession:
        if self.current_session is None:
            raise ValueError("No active session. Call start_session first.")
        return self.current_session

    def start_session(
        self,
        user_id: str,
        meta: str = "",
        sample_size: Optional[int] = None,
    ) -> RaterSession:
        """
        Load (or create) a rater's session and make it current.

        The stored session is used as-is for cases that were already sampled;
        only empty scopes are sampled. The sample size can only change while
        the session holds no cases.

        Args:
            user_id: Rater id (surrounding whitespace is ignored)
            meta: Free-text rater details (role, institution, ...)
            sample_size: Cases per dataset; defaults to the configured default

        Returns:
            The active session

        Raises:
            ValueError: If the user id is empty or the sample size is not allowed
            LoadError: If a dataset or the stored session cannot be loaded.
                Nothing is persisted and no session becomes current.
        """
        user_id = (user_id or "").strip()
        if not user_id:
            raise ValueError("A user id is required")

        sampling = self.settings.sampling
        if sample_size is None:
            sample_size = sampling.default_sample_size
        if sample_size not in sampling.allowed_sample_sizes:
            raise ValueError(
                f"Sample size must be one of {sampling.allowed_sample_sizes}, got {sample_size}"
            )

        session = self.persistence.load(user_id)
        if session is None:
            session = session_machine.new_session(
                user_id, sample_size, self.settings.phases, meta=meta.strip(), now=self.now
            )
            logger.info("Created new session for %s", user_id)
        else:
            if meta.strip():
                session.user.meta = meta.strip()
            if not session.has_cases():
                session.config.sample_size_per_dataset = sample_size
            session_machine.reconcile_layout(session, self.settings.phases)

        populated = self.loader.populate_session(session)
        if populated:
            logger.info("Sampled %s for %s", ", ".join(populated), user_id)
        session_machine.activate(session, now=self.now)

        self.current_session = session
        self.last_report = self.persistence.save(session)
        return session

    def record_answer(self, case_id: str, answer: Answer) -> SaveOutcome:
        """
        Save an answer for a case of the current scope and persist the session.

        Raises:
            SaveInProgressError: If another save is still in flight
            ValidationError: If the answer is incomplete (session unchanged)
        """
        session = self._require_session()
        if not self._save_lock.acquire(blocking=False):
            raise SaveInProgressError("A save is already in progress for this session")
        try:
            outcome = session_machine.record_answer(
                session,
                case_id,
                answer,
                model_ids=self.settings.model_ids,
                scoring=self.settings.scoring,
                now=self.now,
            )
            self.last_report = self.persistence.save(session)
            return outcome
        finally:
            self._save_lock.release()

    def prev(self) -> NavigationOutcome:
        outcome = session_machine.go_prev(self._require_session())
        if outcome.moved:
            self.persist_local()
        return outcome

    def select_scope(self, phase_key: str, scope_key: str) -> RaterSession:
        session = session_machine.select_scope(self._require_session(), phase_key, scope_key)
        self.persist_local()
        return session

    def current_phase(self) -> Optional[PhaseState]:
        return session_machine.current_phase(self._require_session())

    def current_scope(self) -> Optional[ScopeState]:
        return session_machine.current_scope(self._require_session())

    def current_case(self) -> Optional[Case]:
        return session_machine.current_case(self._require_session())

    def current_answer(self) -> Optional[Answer]:
        scope = self.current_scope()
        case = self.current_case()
        if scope is None or case is None:
            return None
        return scope.answers.get(case.id)

    def blinded_order(self, case: Optional[Case] = None) -> List[str]:
        """Model ids in the display order for a case of the current scope."""
        session = self._require_session()
        scope = self.current_scope()
        case = case or self.current_case()
        if scope is None or case is None:
            return []
        return build_blinded_order(session.user_id, scope.key, case.id, self.settings.model_ids)

    def progress(self) -> Progress:
        return session_machine.progress(self._require_session())

    def build_export(self) -> ExportDocument:
        return build_export(self._require_session(), self.settings, exported_at=self.now())

    def export(self, output_dir: Optional[Path] = None) -> Path:
        """Write the current session's export file and return its path."""
        output_dir = output_dir or self.settings.resolve_path(self.settings.export.output_dir)
        path = write_export(self.build_export(), output_dir)
        logger.info("Exported session for %s to %s", self._require_session().user_id, path)
        return path

    def persist_local(self) -> bool:
        """
        Write the current session to the local cache.

        Used by autosave and at interpreter exit. Skipped while a save is in
        flight, since that save persists the session anyway.
        """
        if self.current_session is None:
            return False
        if not self._save_lock.acquire(blocking=False):
            return False
        try:
            return self.persistence.save_local(self.current_session)
        finally:
            self._save_lock.release()

    def reset(self, user_id: Optional[str] = None) -> SaveReport:
        """
        Delete a rater's stored session (local and remote).

        Defaults to the current rater; the current session is dropped when it
        belongs to the reset rater.
        """
        if user_id is None:
            user_id = self._require_session().user_id
        user_id = user_id.strip()
        if not user_id:
            raise ValueError("A user id is required")

        report = self.persistence.delete(user_id)
        if self.current_session is not None and self.current_session.user_id == user_id:
            self.current_session = None
        logger.info("Reset session for %s", user_id)
        return report
