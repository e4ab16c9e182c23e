"""
Session storage backends.

- LocalSessionCache: JSON files on local disk (always present)
- HttpSessionStore: JSON key-value web service
- SheetsSessionStore: Google Sheets worksheet
- MemorySessionStore: in-process dictionary
"""

from rad_rater.storage.base import MemorySessionStore, SessionStore
from rad_rater.storage.http_store import HttpSessionStore
from rad_rater.storage.local_cache import LocalSessionCache
from rad_rater.storage.sheets_store import SheetsSessionStore

__all__ = [
    "SessionStore",
    "MemorySessionStore",
    "LocalSessionCache",
    "HttpSessionStore",
    "SheetsSessionStore",
]
