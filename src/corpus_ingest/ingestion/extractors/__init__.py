"""
Extractors: one strategy per source type.

:func:`build_extractor` is the single dispatch point; the ``match`` is
closed with :func:`typing.assert_never` so a new source variant fails
type-checking until it gets an extractor.
"""

from __future__ import annotations

from typing import assert_never

from corpus_ingest.ingestion.extractors.base import BaseExtractor, CancellationToken, ExtractionContext
from corpus_ingest.ingestion.extractors.faq import FaqExtractor
from corpus_ingest.ingestion.extractors.flarum import FlarumExtractor
from corpus_ingest.ingestion.extractors.markdown_archive import MarkdownArchiveExtractor
from corpus_ingest.ingestion.extractors.sitemap import SitemapExtractor
from corpus_ingest.models import FaqSource, FlarumSource, MarkdownArchiveSource, SitemapSource, Source

__all__ = [
    "BaseExtractor",
    "CancellationToken",
    "ExtractionContext",
    "FaqExtractor",
    "FlarumExtractor",
    "MarkdownArchiveExtractor",
    "SitemapExtractor",
    "build_extractor",
]


def build_extractor(source: Source, context: ExtractionContext) -> BaseExtractor:
    """Return the extractor matching *source*'s variant."""
    match source:
        case FaqSource():
            return FaqExtractor(source, context)
        case FlarumSource():
            return FlarumExtractor(source, context)
        case SitemapSource():
            return SitemapExtractor(source, context)
        case MarkdownArchiveSource():
            return MarkdownArchiveExtractor(source, context)
        case _:
            assert_never(source)
