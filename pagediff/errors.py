"""Exceptions raised by pagediff."""

from __future__ import annotations


class PageDiffError(Exception):
    """Base class for all pagediff errors."""


class ValidationError(PageDiffError, ValueError):
    """Malformed query parameters, duration strings or other caller input."""


class SessionNotFoundError(PageDiffError, LookupError):
    """An operation targeted a session id that does not exist."""

    def __init__(self, session_id: str | None = None):
        if session_id is None:
            super().__init__("No sessions found. Start a session first.")
        else:
            super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class CorruptRecordError(PageDiffError):
    """A session descriptor could not be parsed or failed validation."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Corrupt session record at {path}: {reason}")
        self.path = path
        self.reason = reason


class DimensionMismatchError(PageDiffError):
    """Baseline and current rasters differ in size."""

    def __init__(self, baseline_size: tuple[int, int], current_size: tuple[int, int]):
        super().__init__(
            "Image dimensions mismatch: baseline (%dx%d) vs current (%dx%d)"
            % (*baseline_size, *current_size)
        )
        self.baseline_size = baseline_size
        self.current_size = current_size
