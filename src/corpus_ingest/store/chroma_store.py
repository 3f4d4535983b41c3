"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from typing import Any

import chromadb

from corpus_ingest.store.base import VectorCollection, VectorStoreBase
from corpus_ingest.store.filters import MetadataFilter

logger = logging.getLogger(__name__)

_OP_MAP = {
    "eq": "$eq",
    "ne": "$ne",
    "gt": "$gt",
    "gte": "$gte",
    "lt": "$lt",
    "lte": "$lte",
    "in": "$in",
    "nin": "$nin",
}


def _build_chroma_where(filters: list[MetadataFilter] | None) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Chroma ``where`` syntax."""
    if not filters:
        return None

    clauses: list[dict[str, Any]] = []
    for f in filters:
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaCollection(VectorCollection):
    """Adapter over a ``chromadb`` collection handle."""

    def __init__(self, collection: Any) -> None:
        super().__init__(collection.name)
        self._collection = collection

    def get_ids(
        self,
        *,
        filters: list[MetadataFilter] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[str]:
        result = self._collection.get(
            where=_build_chroma_where(filters),
            limit=limit,
            offset=offset,
            include=[],
        )
        return list(result.get("ids") or [])

    def delete(self, ids: list[str]) -> None:
        if ids:
            self._collection.delete(ids=ids)

    def upsert(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict[str, Any]],
        documents: list[str],
    ) -> None:
        self._collection.upsert(ids=ids, embeddings=embeddings, metadatas=metadatas, documents=documents)

    def query(
        self,
        query_embedding: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[dict[str, Any]]:
        results = self._collection.query(
            query_embeddings=[query_embedding],
            n_results=k,
            where=_build_chroma_where(filters),
            include=["documents", "metadatas", "distances"],
        )

        hits: list[dict[str, Any]] = []
        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        for doc_id, content, meta, dist in zip(ids, docs, metas, distances):
            # Chroma returns distances; convert to a 0-1 similarity score.
            hits.append(
                {
                    "id": doc_id,
                    "content": content or "",
                    "score": 1.0 / (1.0 + dist),
                    "metadata": meta or {},
                }
            )
        return hits

    def get_documents(
        self,
        *,
        filters: list[MetadataFilter] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        result = self._collection.get(
            where=_build_chroma_where(filters),
            limit=limit,
            offset=offset,
            include=["documents", "metadatas"],
        )
        ids = result.get("ids") or []
        docs = result.get("documents") or [None] * len(ids)
        metas = result.get("metadatas") or [None] * len(ids)
        return [
            {"id": doc_id, "content": content or "", "metadata": meta or {}}
            for doc_id, content, meta in zip(ids, docs, metas)
        ]


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    Parameters
    ----------
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    client:
        Pre-built client (tests, embedded Chroma); overrides host/port.
    distance_metric:
        HNSW distance function for newly created collections.
    """

    def __init__(
        self,
        *,
        host: str = "localhost",
        port: int = 8000,
        client: Any | None = None,
        distance_metric: str = "cosine",
    ) -> None:
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._distance_metric = distance_metric

    def get_or_create_collection(self, name: str) -> ChromaCollection:
        collection = self._client.get_or_create_collection(
            name=name,
            metadata={"hnsw:space": self._distance_metric},
        )
        return ChromaCollection(collection)

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
