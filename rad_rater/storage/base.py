"""
Session store base class.

Every backend implements the private ``_get``/``_put``/``_delete`` hooks and
signals failure by raising PersistenceError. The public methods never raise:
failures are logged and reported as None/False so that a flaky backend can
never block the rater.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from rad_rater.errors import PersistenceError

logger = logging.getLogger(__name__)

Payload = Dict[str, Any]


class SessionStore(ABC):
    """Key-value store of raw session payloads, keyed by user id."""

    name = "store"

    @abstractmethod
    def _get(self, user_id: str) -> Optional[Payload]:
        """Return the stored payload or None when there is none."""

    @abstractmethod
    def _put(self, user_id: str, payload: Payload) -> None:
        """Store the payload, replacing any previous one."""

    @abstractmethod
    def _delete(self, user_id: str) -> None:
        """Remove the payload; removing a missing payload is not an error."""

    def get(self, user_id: str) -> Optional[Payload]:
        try:
            return self._get(user_id)
        except PersistenceError as e:
            logger.warning("%s get failed for %s: %s", self.name, user_id, e)
            return None

    def put(self, user_id: str, payload: Payload) -> bool:
        try:
            self._put(user_id, payload)
            return True
        except PersistenceError as e:
            logger.warning("%s put failed for %s: %s", self.name, user_id, e)
            return False

    def delete(self, user_id: str) -> bool:
        try:
            self._delete(user_id)
            return True
        except PersistenceError as e:
            logger.warning("%s delete failed for %s: %s", self.name, user_id, e)
            return False


class MemorySessionStore(SessionStore):
    """In-process store, used when no remote backend is configured and in tests."""

    name = "memory"

    def __init__(self):
        self.payloads: Dict[str, Payload] = {}

    def _get(self, user_id: str) -> Optional[Payload]:
        return self.payloads.get(user_id)

    def _put(self, user_id: str, payload: Payload) -> None:
        self.payloads[user_id] = payload

    def _delete(self, user_id: str) -> None:
        self.payloads.pop(user_id, None)
