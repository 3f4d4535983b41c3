"""Unit tests for the ingestion pipeline and its vector-store helpers."""

from __future__ import annotations

import logging

import pytest
from conftest import InMemoryCollection, InMemoryVectorStore

from corpus_ingest.config import Settings
from corpus_ingest.errors import ContentValidationError
from corpus_ingest.ingestion.chunker import TextSegmenter
from corpus_ingest.ingestion.embedder import Embedder
from corpus_ingest.ingestion.pipeline import (
    IngestionPipeline,
    RecordBatch,
    build_records,
    delete_source_vectors,
    upsert_records,
)
from corpus_ingest.models import Document, FaqEntry, FaqSource, Segment


def _faq(*entry_ids: int, source_id: str = "faq1") -> FaqSource:
    return FaqSource(
        id=source_id,
        faqs=[FaqEntry(id=i, questions=f"Question {i}?", answer=f"Answer {i}.") for i in entry_ids],
    )


def _records(count: int, source_id: str = "s") -> RecordBatch:
    return RecordBatch(
        ids=[f"doc|{i}" for i in range(count)],
        embeddings=[[float(i), 1.0] for i in range(count)],
        metadatas=[{"sourceId": source_id, "segmentIndex": i} for i in range(count)],
        documents=[f"text {i}" for i in range(count)],
    )


@pytest.fixture()
def pipeline(
    vector_store: InMemoryVectorStore, embedder: Embedder, settings: Settings, segmenter: TextSegmenter
) -> IngestionPipeline:
    return IngestionPipeline(vector_store, embedder, settings, segmenter=segmenter)


# ── Records ─────────────────────────────────────────────────────────────


def test_build_records_ids_and_metadata() -> None:
    doc = Document(
        uri="https://site.test/page",
        title="Page",
        segments=[
            Segment(text="one", token_count=1, embedding=[0.1]),
            Segment(text="two", token_count=1, embedding=[0.2]),
        ],
    )
    records = build_records("src", [doc])
    assert records.ids == ["https://site.test/page|0", "https://site.test/page|1"]
    assert records.documents == ["one", "two"]
    assert records.embeddings == [[0.1], [0.2]]
    assert records.metadatas[1] == {
        "sourceId": "src",
        "docUri": "https://site.test/page",
        "docTitle": "Page",
        "segmentIndex": 1,
        "tokenCount": 1,
    }


def test_record_batch_slice() -> None:
    batch = _records(5).slice(1, 3)
    assert len(batch) == 2
    assert batch.ids == ["doc|1", "doc|2"]
    assert batch.documents == ["text 1", "text 2"]


# ── Upsert ──────────────────────────────────────────────────────────────


def test_upsert_in_batches_of_2000() -> None:
    collection = InMemoryCollection("c")
    messages: list[str] = []
    written = upsert_records(collection, _records(4500), log=messages.append)
    assert written == 4500
    assert collection.upsert_sizes == [2000, 2000, 500]
    assert messages == [
        "Wrote 2000/4500 segments to vector collection c",
        "Wrote 4000/4500 segments to vector collection c",
        "Wrote 4500/4500 segments to vector collection c",
    ]


def test_upsert_nothing() -> None:
    collection = InMemoryCollection("c")
    assert upsert_records(collection, RecordBatch()) == 0
    assert collection.upsert_sizes == []


# ── Delete ──────────────────────────────────────────────────────────────


def test_delete_pages_through_source_records() -> None:
    collection = InMemoryCollection("c")
    collection.upsert(*_astuple(_records(1200, source_id="s")))
    other = RecordBatch(ids=["other|0"], embeddings=[[0.0]], metadatas=[{"sourceId": "t"}], documents=["x"])
    collection.upsert(*_astuple(other))

    deleted = delete_source_vectors(collection, "s")
    assert deleted == 1200
    assert [len(ids) for ids in collection.delete_calls] == [500, 500, 200]
    assert list(collection.records) == ["other|0"]


class StuckCollection(InMemoryCollection):
    """Accepts deletes without applying them."""

    def delete(self, ids: list[str]) -> None:
        self.delete_calls.append(list(ids))


def test_delete_residue_is_reported(caplog: pytest.LogCaptureFixture) -> None:
    collection = StuckCollection("c")
    collection.upsert(*_astuple(_records(3, source_id="s")))
    messages: list[str] = []
    with caplog.at_level(logging.ERROR, logger="corpus_ingest.ingestion.pipeline"):
        deleted = delete_source_vectors(collection, "s", log=messages.append)
    assert deleted == 3
    assert len(collection.delete_calls) == 1
    assert messages == ["Could not delete all vectors for source s, 3 remain"]
    assert "Could not delete 3 vectors for source s" in caplog.text


def _astuple(batch: RecordBatch) -> tuple:
    return batch.ids, batch.embeddings, batch.metadatas, batch.documents


# ── End to end ──────────────────────────────────────────────────────────


def test_run_indexes_every_segment(pipeline: IngestionPipeline, vector_store: InMemoryVectorStore) -> None:
    messages: list[str] = []
    written = pipeline.run(_faq(1, 2), log=messages.append)
    assert written == 2
    collection = vector_store.collections["faq1"]
    assert sorted(collection.records) == ["faq://faq1/1|0", "faq://faq1/2|0"]
    record = collection.records["faq://faq1/1|0"]
    assert record["document"] == "Question 1?\n\nAnswer 1."
    assert record["embedding"] == [float(len("Question 1?\n\nAnswer 1.")), 1.0]
    assert record["metadata"]["sourceId"] == "faq1"
    assert "Deleting previous vectors for source faq1" in messages


def test_rerun_replaces_previous_records(pipeline: IngestionPipeline, vector_store: InMemoryVectorStore) -> None:
    pipeline.run(_faq(1, 2, 3))
    pipeline.run(_faq(3, 4))
    assert sorted(vector_store.collections["faq1"].records) == ["faq://faq1/3|0", "faq://faq1/4|0"]


def test_sources_are_isolated(pipeline: IngestionPipeline, vector_store: InMemoryVectorStore) -> None:
    pipeline.run(_faq(1, source_id="a"))
    pipeline.run(_faq(2, source_id="b"))
    pipeline.run(_faq(3, source_id="a"))
    assert list(vector_store.collections["b"].records) == ["faq://b/2|0"]
    assert list(vector_store.collections["a"].records) == ["faq://a/3|0"]


def test_failed_run_keeps_previous_records(pipeline: IngestionPipeline, vector_store: InMemoryVectorStore) -> None:
    pipeline.run(_faq(1))
    too_long = FaqSource(id="faq1", faqs=[FaqEntry(id=9, questions="Q", answer="w " * 600)])
    with pytest.raises(ContentValidationError):
        pipeline.run(too_long)
    assert list(vector_store.collections["faq1"].records) == ["faq://faq1/1|0"]


def test_run_respects_upsert_batch_size(
    vector_store: InMemoryVectorStore, embedder: Embedder, settings: Settings, segmenter: TextSegmenter
) -> None:
    pipeline = IngestionPipeline(vector_store, embedder, settings, segmenter=segmenter, upsert_batch_size=2)
    pipeline.run(_faq(1, 2, 3, 4, 5))
    assert vector_store.collections["faq1"].upsert_sizes == [2, 2, 1]
