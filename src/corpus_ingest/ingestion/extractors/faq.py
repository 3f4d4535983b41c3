"""FAQ lists: one atomic segment per entry."""

from __future__ import annotations

from corpus_ingest.errors import ContentValidationError
from corpus_ingest.ingestion.extractors.base import BaseExtractor
from corpus_ingest.models import Document, FaqSource


class FaqExtractor(BaseExtractor[FaqSource]):
    """FAQ entries are never split; an entry over the ceiling is an authoring error."""

    def extract(self) -> list[Document]:
        self.log(f"Processing {len(self.source.faqs)} FAQ entries")
        return [
            Document(
                uri=f"faq://{self.source_id}/{entry.id}",
                title=entry.questions,
                text=entry.questions + "\n\n" + entry.answer,
            )
            for entry in self.source.faqs
        ]

    def prepare(self, document: Document) -> None:
        segmenter = self.context.segmenter
        segment = segmenter.segment(document.text)
        if segment.token_count > segmenter.max_tokens:
            raise ContentValidationError(
                f"Token count of FAQ entry '{document.title}' is {segment.token_count} "
                f"> {segmenter.max_tokens}, make it smaller."
            )
        document.segments = [segment]
