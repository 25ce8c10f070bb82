"""Search synchronization exceptions."""

from typing import Optional


class SearchIndexError(Exception):
    """Application-level failure reported by the search engine.

    ``status_code`` carries the engine's HTTP status when one is known, so
    callers can decide which outcomes count as success (409 on create,
    404 on delete).
    """

    def __init__(self, message: str, status_code: Optional[int] = None, code: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409 or "already_exists" in self.code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404 or "not_found" in self.code


class SearchIndexUnavailable(SearchIndexError):
    """The search engine could not be reached (connection error or timeout)."""


class NormalizationError(ValueError):
    """A content record could not be turned into an index document."""
