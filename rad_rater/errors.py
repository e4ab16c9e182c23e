"""
Error taxonomy for the rater.

- ValidationError: a submitted rating is missing required fields. Recoverable;
  the session is left untouched.
- LoadError: a dataset (or a stored session) could not be loaded. Fatal to
  starting a session; carries remediation guidance for the rater.
- PersistenceError: the remote store is unreachable or rejected a request.
  Recoverable; the in-memory session stays authoritative.
- SaveInProgressError: a second save was submitted while the previous one for
  the same session is still being persisted.
"""

from typing import Iterable, List, Optional


class RaterError(Exception):
    """Base class for all rater errors."""
    pass


class ValidationError(RaterError):
    """Raised when an answer is missing required rating fields."""

    def __init__(self, missing_fields: Iterable[str], message: Optional[str] = None):
        self.missing_fields: List[str] = list(missing_fields)
        if message is None:
            message = "Missing required field(s): " + ", ".join(self.missing_fields)
        super().__init__(message)


class LoadError(RaterError):
    """Raised when a dataset source or stored session cannot be loaded."""

    def __init__(self, message: str, remediation: Optional[List[str]] = None):
        self.remediation: List[str] = list(remediation or [])
        super().__init__(message)

    def describe(self) -> str:
        """Message followed by the remediation checklist, one item per line."""
        lines = [str(self)]
        if self.remediation:
            lines.append("")
            lines.append("Checklist:")
            lines.extend(f"  • {item}" for item in self.remediation)
        return "\n".join(lines)


class PersistenceError(RaterError):
    """Raised inside store implementations when a remote call fails."""
    pass


class SaveInProgressError(RaterError):
    """Raised when a save is submitted while another one is outstanding."""
    pass
