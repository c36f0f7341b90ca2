"""Exception hierarchy for the synchronization worker."""

from __future__ import annotations


class MovieSyncError(RuntimeError):
    """Base exception for worker failures."""


class ConfigurationError(MovieSyncError):
    """Raised at startup when credentials or required settings are absent."""


class FetchError(MovieSyncError):
    """Raised when one provider page cannot be retrieved or decoded."""

    def __init__(self, category: str, page: int, reason: str) -> None:
        super().__init__(f"Fetch failed for category={category} page={page}: {reason}")
        self.category = category
        self.page = page
        self.reason = reason


class PersistError(MovieSyncError):
    """Raised when the store rejects an upsert batch as a whole."""

    def __init__(self, reason: str, *, batch_size: int = 0) -> None:
        super().__init__(f"Upsert of {batch_size} records failed: {reason}")
        self.reason = reason
        self.batch_size = batch_size


__all__ = ["ConfigurationError", "FetchError", "MovieSyncError", "PersistError"]
