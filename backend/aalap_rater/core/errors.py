from __future__ import annotations


class RaterError(Exception):
    """Base class for every error raised by aalap_rater."""


class StorageError(RaterError):
    """The object store could not be reached or rejected the request."""


class MalformedRatingsDocument(RaterError):
    """The ratings document exists but is not a JSON array of rating entries."""


class ConcurrentWriteError(RaterError):
    """
    A conditional write lost the race against another writer.
    Only raised when RATINGS_CONDITIONAL_WRITES is enabled.
    """


class CatalogFetchError(RaterError):
    """prompts.json could not be fetched or is not a JSON array."""


class RatingApiError(RaterError):
    """The rating API answered with an error (client side)."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status
