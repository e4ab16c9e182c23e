"""
Remote session store in a Google Sheets worksheet.

One row per rater:

    user_id | updated_at | payload | (payload continued) ...

Google Sheets caps a cell at 50,000 characters, so the JSON payload is split
across as many cells as it needs.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import gspread
import requests
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials

from rad_rater.errors import LoadError, PersistenceError
from rad_rater.storage.base import Payload, SessionStore

logger = logging.getLogger(__name__)

# Google API scopes required for sheets operations
SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive"
]

HEADER = ["user_id", "updated_at", "payload"]
CELL_LIMIT = 45000

# gspread surfaces transport failures as raw requests exceptions
API_ERRORS = (gspread.exceptions.GSpreadException, requests.RequestException)


def chunk_payload(text: str, size: int = CELL_LIMIT) -> List[str]:
    """Split text into cells of at most `size` characters (at least one cell)."""
    return [text[i:i + size] for i in range(0, len(text), size)] or [""]


def get_gspread_client(credentials_path: Path) -> gspread.Client:
    """
    Create an authenticated gspread client.

    Raises:
        FileNotFoundError: If credentials file doesn't exist
    """
    if not credentials_path.exists():
        raise FileNotFoundError(f"Credentials file not found: {credentials_path}")

    credentials = Credentials.from_service_account_file(
        str(credentials_path),
        scopes=SCOPES
    )
    return gspread.authorize(credentials)


class SheetsSessionStore(SessionStore):
    """
    Session store backed by a worksheet of a shared spreadsheet.

    The worksheet is opened lazily on first use and created (with a header
    row) if it does not exist.
    """

    name = "sheets store"

    def __init__(
        self,
        spreadsheet_id: str,
        credentials_path: Path,
        sheet_name: str = "sessions",
        worksheet: Optional[gspread.Worksheet] = None,
    ):
        if not spreadsheet_id and worksheet is None:
            raise ValueError("A spreadsheet_id is required for the sheets session store")
        self.spreadsheet_id = spreadsheet_id
        self.credentials_path = Path(credentials_path)
        self.sheet_name = sheet_name
        self._worksheet = worksheet

    @property
    def worksheet(self) -> gspread.Worksheet:
        if self._worksheet is None:
            try:
                client = get_gspread_client(self.credentials_path)
                spreadsheet = client.open_by_key(self.spreadsheet_id)
                try:
                    self._worksheet = spreadsheet.worksheet(self.sheet_name)
                except gspread.exceptions.WorksheetNotFound:
                    self._worksheet = spreadsheet.add_worksheet(
                        title=self.sheet_name, rows=100, cols=len(HEADER)
                    )
                    self._worksheet.append_row(HEADER, value_input_option="RAW")
                    logger.info("Created worksheet %r", self.sheet_name)
            except API_ERRORS + (GoogleAuthError, OSError) as e:
                raise PersistenceError(f"Could not open spreadsheet {self.spreadsheet_id}: {e}") from e
        return self._worksheet

    def _find_row(self, user_id: str) -> Optional[int]:
        try:
            cell = self.worksheet.find(user_id, in_column=1)
        except API_ERRORS as e:
            raise PersistenceError(f"Lookup failed: {e}") from e
        return cell.row if cell is not None else None

    def _get(self, user_id: str) -> Optional[Payload]:
        row = self._find_row(user_id)
        if row is None:
            return None
        try:
            values = self.worksheet.row_values(row)
        except API_ERRORS as e:
            raise PersistenceError(f"Could not read row {row}: {e}") from e

        text = "".join(values[2:])
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise LoadError(
                f"Stored session for {user_id} in sheet {self.sheet_name!r} is not valid JSON",
                [f"Inspect row {row} of the {self.sheet_name!r} worksheet", "Reset the session to start over"],
            ) from e

    def _put(self, user_id: str, payload: Payload) -> None:
        cells = chunk_payload(json.dumps(payload, ensure_ascii=False))
        values = [user_id, datetime.now(timezone.utc).isoformat()] + cells
        ws = self.worksheet
        row = self._find_row(user_id)
        try:
            if len(values) > ws.col_count:
                ws.add_cols(len(values) - ws.col_count)
            if row is None:
                ws.append_row(values, value_input_option="RAW")
            else:
                # Payload may have shrunk; clear stale continuation cells first
                ws.batch_clear([f"{row}:{row}"])
                ws.update(values=[values], range_name=f"A{row}", value_input_option="RAW")
        except API_ERRORS as e:
            raise PersistenceError(f"Could not write session for {user_id}: {e}") from e

    def _delete(self, user_id: str) -> None:
        row = self._find_row(user_id)
        if row is None:
            return
        try:
            self.worksheet.delete_rows(row)
        except API_ERRORS as e:
            raise PersistenceError(f"Could not delete session for {user_id}: {e}") from e
