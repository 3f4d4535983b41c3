"""
Stores: the job/source database and the vector database.

Public surface
--------------
- :class:`JobStore`: MongoDB-backed jobs, sources and collections.
- :class:`VectorStoreBase`, :class:`VectorCollection`: abstract vector backend.
- :class:`ChromaVectorStore`: default Chroma backend.
- :class:`MetadataFilter`: declarative metadata filter.
"""

from corpus_ingest.store.base import VectorCollection, VectorStoreBase
from corpus_ingest.store.filters import MetadataFilter

__all__ = [
    "ChromaVectorStore",
    "JobStore",
    "MetadataFilter",
    "VectorCollection",
    "VectorStoreBase",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import backends to avoid pulling in chromadb / pymongo at import time."""
    if name == "ChromaVectorStore":
        from corpus_ingest.store.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    if name == "JobStore":
        from corpus_ingest.store.job_store import JobStore

        return JobStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
