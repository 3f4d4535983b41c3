"""Shared pytest configuration, fixtures and in-memory fakes."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from corpus_ingest.config import Settings
from corpus_ingest.errors import NotFoundError
from corpus_ingest.ingestion.chunker import TextSegmenter
from corpus_ingest.ingestion.embedder import Embedder
from corpus_ingest.models import Job, JobState, Source
from corpus_ingest.store.base import VectorCollection, VectorStoreBase
from corpus_ingest.store.filters import MetadataFilter


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


def count_words(text: str) -> int:
    """Deterministic stand-in for the subword tokenizer: one token per word."""
    return len(text.split())


# ── Fakes ───────────────────────────────────────────────────────────────


class FakeEmbeddings:
    """LangChain-style embeddings returning tiny deterministic vectors."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [[float(len(t)), 1.0] for t in texts]


class InMemoryCollection(VectorCollection):
    """Dict-backed vector collection recording every upsert."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.records: dict[str, dict[str, Any]] = {}
        self.upsert_sizes: list[int] = []
        self.delete_calls: list[list[str]] = []

    def _matching(self, filters: list[MetadataFilter] | None) -> list[str]:
        return [
            record_id
            for record_id, record in self.records.items()
            if all(f.matches(record["metadata"]) for f in filters or [])
        ]

    def get_ids(self, *, filters=None, limit=None, offset=0) -> list[str]:
        ids = self._matching(filters)[offset:]
        return ids[:limit] if limit is not None else ids

    def delete(self, ids: list[str]) -> None:
        self.delete_calls.append(list(ids))
        for record_id in ids:
            self.records.pop(record_id, None)

    def upsert(self, ids, embeddings, metadatas, documents) -> None:
        self.upsert_sizes.append(len(ids))
        for record_id, embedding, metadata, document in zip(ids, embeddings, metadatas, documents):
            self.records[record_id] = {"embedding": embedding, "metadata": metadata, "document": document}

    def query(self, query_embedding, *, k=5, filters=None) -> list[dict[str, Any]]:
        def score(record_id: str) -> float:
            embedding = self.records[record_id]["embedding"]
            return sum(a * b for a, b in zip(query_embedding, embedding))

        ranked = sorted(self._matching(filters), key=score, reverse=True)[:k]
        return [
            {
                "id": record_id,
                "content": self.records[record_id]["document"],
                "score": score(record_id),
                "metadata": self.records[record_id]["metadata"],
            }
            for record_id in ranked
        ]

    def get_documents(self, *, filters=None, limit=None, offset=0) -> list[dict[str, Any]]:
        return [
            {
                "id": record_id,
                "content": self.records[record_id]["document"],
                "metadata": self.records[record_id]["metadata"],
            }
            for record_id in self.get_ids(filters=filters, limit=limit, offset=offset)
        ]


class InMemoryVectorStore(VectorStoreBase):
    def __init__(self) -> None:
        self.collections: dict[str, InMemoryCollection] = {}

    def get_or_create_collection(self, name: str) -> InMemoryCollection:
        return self.collections.setdefault(name, InMemoryCollection(name))

    def health_check(self) -> bool:
        return True


class FakeJobStore:
    """In-memory job store recording the order of lifecycle calls."""

    def __init__(self, jobs: list[Job] | None = None, sources: list[Source] | None = None) -> None:
        self.jobs: dict[str, Job] = {job.id: job for job in jobs or []}
        self.sources: dict[str, Source] = {source.id: source for source in sources or []}
        self.events: list[str] = []
        self.logs: dict[str, str] = {}

    def recover_running_jobs(self) -> int:
        self.events.append("recover")
        count = 0
        for job in self.jobs.values():
            if job.state == JobState.RUNNING:
                job.state = JobState.STOPPED
                count += 1
        return count

    def claim_next_waiting_job(self) -> Job | None:
        self.events.append("claim")
        waiting = sorted(
            (job for job in self.jobs.values() if job.state == JobState.WAITING),
            key=lambda job: job.created_at,
        )
        if not waiting:
            return None
        job = waiting[0]
        job.state = JobState.RUNNING
        return job.model_copy()

    def update_job_log(self, job_id: str, log: str) -> None:
        self.logs[job_id] = log

    def get_job_state(self, job_id: str) -> JobState:
        job = self.jobs.get(job_id)
        return job.state if job else JobState.STOPPED

    def finish_job(self, job_id: str, state: JobState) -> bool:
        job = self.jobs[job_id]
        if job.state != JobState.RUNNING:
            return False
        job.state = state
        return True

    def get_source(self, source_id: str) -> Source:
        try:
            return self.sources[source_id]
        except KeyError:
            raise NotFoundError(f"Source with id {source_id} does not exist") from None


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        openai_api_key="test-key",
        admin_token="admin",
        db_password="secret",
        data_dir=tmp_path / "data",
        files_dir=tmp_path / "files",
        _env_file=None,
    )


@pytest.fixture()
def segmenter() -> TextSegmenter:
    return TextSegmenter(count_tokens=count_words)


@pytest.fixture()
def fake_embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture()
def embedder(fake_embeddings: FakeEmbeddings) -> Embedder:
    return Embedder(fake_embeddings, batch_size=100)  # type: ignore[arg-type]


@pytest.fixture()
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()
