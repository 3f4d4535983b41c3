"""End-to-end ingestion of one source.

    extract → segment + embed → delete stale vectors → upsert in batches

Every run fully replaces the source's records in its vector collection.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

import requests

from corpus_ingest.config import Settings
from corpus_ingest.ingestion.chunker import TextSegmenter
from corpus_ingest.ingestion.embedder import Embedder
from corpus_ingest.ingestion.extractors import CancellationToken, ExtractionContext, build_extractor
from corpus_ingest.models import Document, Source, VectorRecord
from corpus_ingest.store.base import VectorCollection, VectorStoreBase
from corpus_ingest.store.filters import MetadataFilter

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]

DELETE_PAGE_SIZE = 500
UPSERT_BATCH_SIZE = 2000


@dataclass
class RecordBatch:
    """Parallel arrays in the shape vector stores expect."""

    ids: list[str] = field(default_factory=list)
    embeddings: list[list[float]] = field(default_factory=list)
    metadatas: list[dict[str, Any]] = field(default_factory=list)
    documents: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.ids)

    def append(self, record: VectorRecord) -> None:
        self.ids.append(record.id)
        self.embeddings.append(record.embedding)
        self.metadatas.append(record.metadata.model_dump(by_alias=True))
        self.documents.append(record.document)

    def slice(self, start: int, end: int) -> RecordBatch:
        return RecordBatch(
            ids=self.ids[start:end],
            embeddings=self.embeddings[start:end],
            metadatas=self.metadatas[start:end],
            documents=self.documents[start:end],
        )


def build_records(source_id: str, documents: list[Document]) -> RecordBatch:
    """Flatten documents into records, keeping extraction order."""
    batch = RecordBatch()
    for doc in documents:
        for index in range(len(doc.segments)):
            batch.append(VectorRecord.from_segment(source_id, doc, index))
    return batch


def delete_source_vectors(
    collection: VectorCollection,
    source_id: str,
    *,
    page_size: int = DELETE_PAGE_SIZE,
    log: LogSink | None = None,
) -> int:
    """Delete every record of *source_id*, one page of ids at a time.

    Always reads from offset 0 since each page is gone once deleted.  Stops
    early if a page comes back unchanged, which means the store is not
    applying deletes.  Leftover records are reported but not raised: the
    cleanup is best effort on an eventually consistent store.

    Returns
    -------
    int
        Number of ids submitted for deletion.
    """
    log = log or logger.info
    filters = [MetadataFilter.for_source(source_id)]
    deleted = 0
    previous: list[str] | None = None
    while True:
        ids = collection.get_ids(filters=filters, limit=page_size, offset=0)
        if not ids or ids == previous:
            break
        collection.delete(ids)
        deleted += len(ids)
        previous = ids

    residue = collection.get_ids(filters=filters, limit=page_size, offset=0)
    if residue:
        logger.error("Could not delete %d vectors for source %s", len(residue), source_id)
        log(f"Could not delete all vectors for source {source_id}, {len(residue)} remain")
    return deleted


def upsert_records(
    collection: VectorCollection,
    records: RecordBatch,
    *,
    batch_size: int = UPSERT_BATCH_SIZE,
    log: LogSink | None = None,
) -> int:
    """Upsert *records* in batches of *batch_size*, logging after each batch."""
    log = log or logger.info
    total = len(records)
    written = 0
    for start in range(0, total, batch_size):
        batch = records.slice(start, start + batch_size)
        collection.upsert(batch.ids, batch.embeddings, batch.metadatas, batch.documents)
        written += len(batch)
        log(f"Wrote {written}/{total} segments to vector collection {collection.name}")
    return written


class IngestionPipeline:
    """Runs one source through extraction, embedding and indexing.

    Parameters
    ----------
    vector_store:
        Backend holding one collection per source.
    embedder:
        Fills segment embeddings.
    settings:
        Worker settings (storage paths, timeouts).
    segmenter:
        Shared text segmenter; defaults to the ``cl100k_base`` counter.
    session:
        Optional ``requests`` session for extractor HTTP traffic.
    """

    def __init__(
        self,
        vector_store: VectorStoreBase,
        embedder: Embedder,
        settings: Settings,
        *,
        segmenter: TextSegmenter | None = None,
        session: requests.Session | None = None,
        upsert_batch_size: int = UPSERT_BATCH_SIZE,
    ) -> None:
        self.vector_store = vector_store
        self.embedder = embedder
        self.settings = settings
        self.segmenter = segmenter or TextSegmenter()
        self.session = session
        self.upsert_batch_size = upsert_batch_size

    def run(
        self,
        source: Source,
        *,
        log: LogSink | None = None,
        cancel: CancellationToken | None = None,
    ) -> int:
        """Ingest *source* and return the number of segments written."""
        log = log or logger.info
        source_id = source.id or ""
        context = ExtractionContext(
            settings=self.settings,
            log=log,
            cancel=cancel or CancellationToken(),
            segmenter=self.segmenter,
            session=self.session,
        )
        extractor = build_extractor(source, context)
        documents = extractor.extract()
        self.embedder.embed_documents(documents, prepare=extractor.prepare, log=log)

        collection = self.vector_store.get_or_create_collection(source_id)
        log(f"Deleting previous vectors for source {source_id}")
        delete_source_vectors(collection, source_id, log=log)

        records = build_records(source_id, documents)
        return upsert_records(collection, records, batch_size=self.upsert_batch_size, log=log)
