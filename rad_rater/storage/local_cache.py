"""
Local session cache: one JSON file per rater.

    data/sessions/
        session_<quoted user id>.json
"""

import json
import logging
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote, unquote

from rad_rater.errors import LoadError, PersistenceError
from rad_rater.storage.base import Payload, SessionStore

logger = logging.getLogger(__name__)


class LocalSessionCache(SessionStore):
    """
    Stores session payloads as JSON files on local disk.

    Attributes:
        sessions_dir: Directory holding the session files
    """

    name = "local cache"

    def __init__(self, sessions_dir: str = "data/sessions"):
        self.sessions_dir = Path(sessions_dir)

    def path_for(self, user_id: str) -> Path:
        """File path for a user's session. User ids are URL-quoted."""
        return self.sessions_dir / f"session_{quote(user_id, safe='')}.json"

    def _get(self, user_id: str) -> Optional[Payload]:
        path = self.path_for(user_id)
        if not path.exists():
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise LoadError(
                f"Stored session for {user_id} is not readable JSON: {e}",
                [f"Inspect or move aside {path}", "Reset the session to start over"],
            ) from e
        except OSError as e:
            raise PersistenceError(f"Could not read {path}: {e}") from e

    def _put(self, user_id: str, payload: Payload) -> None:
        try:
            self.sessions_dir.mkdir(parents=True, exist_ok=True)
            # Atomic write: write to temp file, then move
            with tempfile.NamedTemporaryFile(
                mode="w", dir=self.sessions_dir, delete=False, suffix=".tmp", encoding="utf-8"
            ) as tmp_file:
                json.dump(payload, tmp_file, indent=2, ensure_ascii=False)
                tmp_file.flush()
                tmp_path = tmp_file.name
            shutil.move(tmp_path, self.path_for(user_id))
            logger.debug("Wrote session for %s to %s", user_id, self.sessions_dir)
        except OSError as e:
            raise PersistenceError(f"Could not write session for {user_id}: {e}") from e

    def _delete(self, user_id: str) -> None:
        try:
            self.path_for(user_id).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Could not delete session for {user_id}: {e}") from e

    def list_user_ids(self) -> List[str]:
        """User ids with a cached session, in file-name order."""
        if not self.sessions_dir.exists():
            return []
        return [
            unquote(p.stem[len("session_"):])
            for p in sorted(self.sessions_dir.glob("session_*.json"))
        ]
