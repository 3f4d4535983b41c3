"""Zip archives of markdown pages exported with a 4-line header.

Each ``.md`` entry starts with::

    https://example.com/page      <- canonical URL
    <anything>
    [Page title]
    [[...]]                       <- end-of-header marker

The rest of the file is the body, segmented along its ``#`` headings.
"""

from __future__ import annotations

import zipfile
from pathlib import Path

from corpus_ingest.errors import ContentValidationError
from corpus_ingest.ingestion.extractors.base import BaseExtractor
from corpus_ingest.models import Document, MarkdownArchiveSource

MARKDOWN_SUFFIXES = (".md", ".markdown")
METADATA_DIRS = ("__MACOSX/",)
HEADER_LINES = 4


def parse_markdown_entry(name: str, content: str) -> Document:
    """Split an archive entry into its header fields and body."""
    lines = content.replace("\r", "").split("\n")
    marker = lines[3].strip() if len(lines) >= HEADER_LINES else ""
    if not (marker.startswith("[[") and marker.endswith("]]")):
        preview = "\n".join(lines[:10])
        raise ContentValidationError(f"Couldn't find header marker [[]] in {name}\n{preview}")

    url = lines[0].strip()
    title = lines[2].strip().replace("[", "", 1).replace("]", "", 1)
    body = "\n".join(lines[HEADER_LINES:]).strip()
    return Document(uri=url, title=title, text=body)


class MarkdownArchiveExtractor(BaseExtractor[MarkdownArchiveSource]):
    """Reads the archive from the upload directory; one document per page."""

    def extract(self) -> list[Document]:
        path = Path(self.context.settings.files_dir) / self.source.archive_file_path
        if not path.is_file():
            raise ContentValidationError(f"Could not find file {self.source.archive_file_path}")

        segmenter = self.context.segmenter
        documents: list[Document] = []
        with zipfile.ZipFile(path) as archive:
            for info in archive.infolist():
                name = info.filename
                if info.is_dir() or any(part in name for part in METADATA_DIRS):
                    continue
                if not name.lower().endswith(MARKDOWN_SUFFIXES):
                    continue
                content = archive.read(info).decode("utf-8", errors="replace")
                doc = parse_markdown_entry(name, content)
                documents.append(doc)
                self.log(f"Processing {name}, {segmenter.count_tokens(doc.text)} tokens")
        return documents

    def prepare(self, document: Document) -> None:
        document.segments = self.context.segmenter.split_by_headings(document.title, document.text)
        document.text = ""
