"""Abstract base classes for vector-store backends.

Adding a new backend only requires subclassing :class:`VectorStoreBase`
and :class:`VectorCollection`.  The ingestion pipeline only talks to these
interfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from corpus_ingest.store.filters import MetadataFilter


class VectorCollection(ABC):
    """One named collection of vector records.

    Parameters
    ----------
    name:
        Logical name of the collection (the source id for ingestion).
    """

    def __init__(self, name: str) -> None:
        self.name = name

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def get_ids(
        self,
        *,
        filters: list[MetadataFilter] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[str]:
        """Return the ids of records matching *filters*, paged."""
        ...

    @abstractmethod
    def delete(self, ids: list[str]) -> None:
        """Delete records by id."""
        ...

    @abstractmethod
    def upsert(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict[str, Any]],
        documents: list[str],
    ) -> None:
        """Insert or overwrite records; index ``i`` of each list is one record."""
        ...

    @abstractmethod
    def query(
        self,
        query_embedding: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[dict[str, Any]]:
        """Return the top-*k* records nearest to *query_embedding*.

        Each result dict contains ``"id"``, ``"content"``, ``"score"``
        (higher = more similar) and ``"metadata"``.
        """
        ...

    @abstractmethod
    def get_documents(
        self,
        *,
        filters: list[MetadataFilter] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Return stored records as ``{"id", "content", "metadata"}`` dicts."""
        ...


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface."""

    @abstractmethod
    def get_or_create_collection(self, name: str) -> VectorCollection:
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...
