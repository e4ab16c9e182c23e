"""
Persistence Facade

Loads and saves whole rater sessions. The remote store, when configured, is
authoritative on load; the local cache is the fallback and is always written
first on save. Store failures are reported, never raised: the in-memory
session stays authoritative and the rater keeps working.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from rad_rater.config import RaterSettings
from rad_rater.errors import LoadError
from rad_rater.migrations import upgrade
from rad_rater.response_models.session import RaterSession
from rad_rater.storage import HttpSessionStore, LocalSessionCache, SessionStore, SheetsSessionStore

logger = logging.getLogger(__name__)


@dataclass
class SaveReport:
    """Which stores accepted a save. `remote` is None when no remote is configured."""
    local: bool
    remote: Optional[bool] = None

    @property
    def ok(self) -> bool:
        return self.local and self.remote is not False

    def describe(self) -> str:
        if self.ok:
            return "Saved"
        failed = []
        if not self.local:
            failed.append("local cache")
        if self.remote is False:
            failed.append("remote store")
        return f"Saved in memory; could not write to {' and '.join(failed)}"


class SessionPersistence:
    """
    Remote-authoritative session persistence with a local fallback.

    Attributes:
        local: Local JSON cache
        remote: Optional remote store
    """

    def __init__(self, local: LocalSessionCache, remote: Optional[SessionStore] = None):
        self.local = local
        self.remote = remote

    def load(self, user_id: str) -> Optional[RaterSession]:
        """
        Load and upgrade a stored session.

        Returns:
            The stored session, or None if neither store has one

        Raises:
            LoadError: If a stored session exists but cannot be read or upgraded
        """
        raw = None
        source = None
        if self.remote is not None:
            raw = self.remote.get(user_id)
            source = self.remote.name
        if raw is None:
            raw = self.local.get(user_id)
            source = self.local.name
        if raw is None:
            return None

        try:
            session = upgrade(raw)
        except (ValueError, PydanticValidationError) as e:
            raise LoadError(
                f"Stored session for {user_id} ({source}) could not be loaded: {e}",
                [
                    "The stored session was left unchanged",
                    "Update the application if the session was written by a newer version",
                    "Reset the session to start over",
                ],
            ) from e

        logger.info("Loaded session for %s from %s", user_id, source)
        return session

    def save_local(self, session: RaterSession) -> bool:
        return self.local.put(session.user_id, session.model_dump(mode="json"))

    def save(self, session: RaterSession) -> SaveReport:
        payload = session.model_dump(mode="json")
        report = SaveReport(local=self.local.put(session.user_id, payload))
        if self.remote is not None:
            report.remote = self.remote.put(session.user_id, payload)
        if not report.ok:
            logger.warning("Session %s: %s", session.user_id, report.describe())
        return report

    def delete(self, user_id: str) -> SaveReport:
        report = SaveReport(local=self.local.delete(user_id))
        if self.remote is not None:
            report.remote = self.remote.delete(user_id)
        return report


class AutosaveTimer:
    """
    Calls `callback` every `interval` seconds on a daemon thread until stopped.

    Exceptions raised by the callback are logged and the timer keeps running.
    """

    def __init__(self, interval: float, callback: Callable[[], object]):
        self.interval = interval
        self.callback = callback
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._stopped = True

    @property
    def running(self) -> bool:
        return not self._stopped

    def start(self) -> None:
        with self._lock:
            if not self._stopped:
                return
            self._stopped = False
            self._arm()

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _arm(self) -> None:
        self._timer = threading.Timer(self.interval, self._tick)
        self._timer.daemon = True
        self._timer.start()

    def _tick(self) -> None:
        try:
            self.callback()
        except Exception:
            logger.exception("Autosave failed")
        with self._lock:
            if not self._stopped:
                self._arm()


def build_remote_store(settings: RaterSettings) -> Optional[SessionStore]:
    """Create the configured remote store (None for backend 'none')."""
    remote = settings.storage.remote
    if remote.backend == "http":
        return HttpSessionStore(remote.endpoint, token=remote.token, timeout=remote.timeout_seconds)
    if remote.backend == "sheets":
        return SheetsSessionStore(
            remote.spreadsheet_id,
            settings.resolve_path(remote.credentials_path),
            sheet_name=remote.sheet_name,
        )
    return None


def build_persistence(settings: RaterSettings) -> SessionPersistence:
    return SessionPersistence(
        LocalSessionCache(str(settings.resolve_path(settings.storage.local_dir))),
        build_remote_store(settings),
    )
