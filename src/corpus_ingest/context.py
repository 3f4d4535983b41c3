"""Explicit handles to the backing services, built once at startup."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import requests

from corpus_ingest.config import Settings
from corpus_ingest.ingestion.embedder import Embedder, get_embedding_function
from corpus_ingest.ingestion.pipeline import IngestionPipeline
from corpus_ingest.store.base import VectorStoreBase
from corpus_ingest.store.job_store import JobStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    """Connections shared by the scheduler and the pipeline.

    Tests build one directly with in-memory fakes; production code uses
    :meth:`connect`.
    """

    settings: Settings
    job_store: JobStore
    vector_store: VectorStoreBase
    embedder: Embedder
    session: requests.Session = field(default_factory=requests.Session)
    mongo_client: Any | None = None

    @classmethod
    def connect(cls, settings: Settings) -> ServiceContext:
        """Connect to MongoDB and Chroma, waiting for both to come up."""
        from corpus_ingest.store.chroma_store import ChromaVectorStore
        from corpus_ingest.store.job_store import connect_mongo

        mongo_client = connect_mongo(settings)
        vector_store = ChromaVectorStore(host=settings.chroma_host, port=settings.chroma_port)
        wait_for_vector_store(vector_store, settings.connect_timeout)
        embedder = Embedder(get_embedding_function(settings), batch_size=settings.embedding_batch_size)
        return cls(
            settings=settings,
            job_store=JobStore(mongo_client[settings.mongo_database]),
            vector_store=vector_store,
            embedder=embedder,
            mongo_client=mongo_client,
        )

    def build_pipeline(self) -> IngestionPipeline:
        return IngestionPipeline(self.vector_store, self.embedder, self.settings, session=self.session)

    def close(self) -> None:
        self.session.close()
        if self.mongo_client is not None:
            self.mongo_client.close()
            self.mongo_client = None


def wait_for_vector_store(store: VectorStoreBase, timeout: float, interval: float = 0.5) -> None:
    """Poll *store*'s health check until it passes or *timeout* elapses."""
    deadline = time.monotonic() + timeout
    while not store.health_check():
        if time.monotonic() >= deadline:
            raise ConnectionError("Could not connect to the vector store")
        time.sleep(interval)
    logger.info("Connected to the vector store")
