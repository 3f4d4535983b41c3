"""Exception hierarchy for the ingestion worker."""

from __future__ import annotations


class IngestError(RuntimeError):
    """Base class for errors raised while ingesting a source."""


class ContentValidationError(IngestError, ValueError):
    """Source content violates an authoring convention (too long, bad header, bad XML)."""


class FetchError(IngestError):
    """An HTTP resource could not be retrieved."""

    def __init__(self, url: str, message: str | None = None) -> None:
        super().__init__(message or f"Could not fetch {url}")
        self.url = url


class JobStoppedError(IngestError):
    """The job was stopped by a user while it was running."""

    def __init__(self, message: str = "Job stopped by user") -> None:
        super().__init__(message)


class NotFoundError(IngestError, LookupError):
    """A source, job or collection does not exist in the store."""
