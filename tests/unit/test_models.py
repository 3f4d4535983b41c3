"""Unit tests for the domain models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from corpus_ingest.models import (
    Document,
    FaqSource,
    Job,
    JobState,
    MarkdownArchiveSource,
    Segment,
    SitemapSource,
    VectorRecord,
    parse_source,
)


class TestParseSource:
    def test_discriminates_on_type(self) -> None:
        source = parse_source(
            {
                "_id": "abc",
                "type": "sitemap",
                "collectionId": "c1",
                "url": "https://site.test/sitemap.xml",
                "includePatterns": ["*/docs/*"],
            }
        )
        assert isinstance(source, SitemapSource)
        assert source.id == "abc"
        assert source.include_patterns == ["*/docs/*"]
        assert source.title_selector == "title"
        assert source.content_selectors == ["body"]

    def test_faq_entries(self) -> None:
        source = parse_source(
            {"type": "faq", "faqs": [{"id": 1, "questions": "Q?", "answer": "A."}]}
        )
        assert isinstance(source, FaqSource)
        assert source.faqs[0].answer == "A."

    def test_unknown_type(self) -> None:
        with pytest.raises(ValidationError):
            parse_source({"type": "rss", "url": "https://x.test/feed"})

    def test_missing_variant_field(self) -> None:
        with pytest.raises(ValidationError):
            parse_source({"type": "markdown_archive"})


class TestToMongo:
    def test_unset_id_is_dropped(self) -> None:
        data = MarkdownArchiveSource(archive_file_path="docs.zip").to_mongo()
        assert "_id" not in data
        assert data["archiveFilePath"] == "docs.zip"
        assert data["type"] == "markdown_archive"

    def test_job_state_is_stored_as_string(self) -> None:
        data = Job(id="j1", source_id="s1", state=JobState.RUNNING).to_mongo()
        assert data["_id"] == "j1"
        assert data["state"] == "running"
        assert data["sourceId"] == "s1"


class TestVectorRecord:
    def test_from_segment(self) -> None:
        doc = Document(
            uri="faq://s1/4",
            title="Q?",
            segments=[
                Segment(text="a", token_count=1, embedding=[1.0]),
                Segment(text="b c", token_count=2, embedding=[2.0]),
            ],
        )
        record = VectorRecord.from_segment("s1", doc, 1)
        assert record.id == "faq://s1/4|1"
        assert record.document == "b c"
        assert record.embedding == [2.0]
        assert record.metadata.model_dump(by_alias=True) == {
            "sourceId": "s1",
            "docUri": "faq://s1/4",
            "docTitle": "Q?",
            "segmentIndex": 1,
            "tokenCount": 2,
        }
