"""Abstract base class for source extractors.

An extractor turns one configured source into :class:`Document` objects.
Extraction happens in two phases:

1. :meth:`BaseExtractor.extract` gathers the documents and their raw text
   (network and file I/O, cancellation checks);
2. :meth:`BaseExtractor.prepare` is handed to the embedder and produces the
   final segments of one document right before it is embedded.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Generic, TypeVar

import requests

from corpus_ingest.config import Settings
from corpus_ingest.errors import JobStoppedError
from corpus_ingest.ingestion.chunker import TextSegmenter
from corpus_ingest.models import BaseSource, Document

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]
SourceT = TypeVar("SourceT", bound=BaseSource)


class CancellationToken:
    """Cooperative stop signal checked at extraction batch boundaries.

    Parameters
    ----------
    probe:
        Callable returning ``True`` once the job should stop; typically a
        read of the job's persisted state.  ``None`` never stops.
    """

    def __init__(self, probe: Callable[[], bool] | None = None) -> None:
        self._probe = probe

    def is_stopped(self) -> bool:
        return bool(self._probe and self._probe())

    def raise_if_stopped(self) -> None:
        if self.is_stopped():
            raise JobStoppedError()


@dataclass
class ExtractionContext:
    """Everything an extractor needs besides its source."""

    settings: Settings
    log: LogSink = logger.info
    cancel: CancellationToken = field(default_factory=CancellationToken)
    segmenter: TextSegmenter = field(default_factory=TextSegmenter)
    session: requests.Session | None = None


class BaseExtractor(ABC, Generic[SourceT]):
    """Source-specific extraction strategy."""

    def __init__(self, source: SourceT, context: ExtractionContext) -> None:
        self.source = source
        self.context = context

    @property
    def source_id(self) -> str:
        return self.source.id or ""

    def log(self, message: str) -> None:
        self.context.log(message)

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def extract(self) -> list[Document]:
        """Return the documents of the source, in a stable order."""
        ...

    # -- optional overrides ---------------------------------------------------

    def prepare(self, document: Document) -> None:
        """Produce *document*'s segments.  No-op when already segmented."""
