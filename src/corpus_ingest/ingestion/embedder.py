"""Embedding of document segments."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from corpus_ingest.config import Settings

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from corpus_ingest.models import Document

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]


def get_embedding_function(settings: Settings) -> Embeddings:
    """Return the configured LangChain embedding model.

    ``openai`` (the default) matches the ``cl100k_base`` token budget used
    for segmentation; ``huggingface`` runs a local sentence-transformer.
    """
    if settings.embedding_provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=settings.embedding_model)
    if settings.embedding_provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        return OpenAIEmbeddings(model=settings.embedding_model, api_key=settings.openai_api_key)
    raise ValueError(
        f"Unsupported embedding_provider={settings.embedding_provider!r}. "
        "Choose from: openai, huggingface."
    )


class Embedder:
    """Fills the ``embedding`` of every segment of a list of documents.

    Parameters
    ----------
    embeddings:
        Any LangChain ``Embeddings`` implementation.
    batch_size:
        Number of texts sent per ``embed_documents`` call.
    """

    def __init__(self, embeddings: Embeddings, *, batch_size: int = 500) -> None:
        self._embeddings = embeddings
        self.batch_size = batch_size

    def embed_documents(
        self,
        documents: list[Document],
        *,
        prepare: Callable[[Document], None] | None = None,
        log: LogSink | None = None,
    ) -> None:
        """Segment (via *prepare*) and embed *documents* in place.

        Parameters
        ----------
        documents:
            Documents whose texts are final.
        prepare:
            Hook run on each document before embedding, typically the
            extractor's segmentation step.
        log:
            Progress sink; defaults to the module logger.
        """
        log = log or logger.info
        if prepare is not None:
            for doc in documents:
                prepare(doc)

        segments = [seg for doc in documents for seg in doc.segments]
        total = len(segments)
        log(f"Embedding {total} segments of {len(documents)} documents")
        for start in range(0, total, self.batch_size):
            batch = segments[start : start + self.batch_size]
            vectors = self._embeddings.embed_documents([seg.text for seg in batch])
            if len(vectors) != len(batch):
                raise RuntimeError(f"Embedding model returned {len(vectors)} vectors for {len(batch)} texts")
            for seg, vector in zip(batch, vectors):
                seg.embedding = list(vector)
            log(f"Embedded {start + len(batch)}/{total} segments")
