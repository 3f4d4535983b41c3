"""Domain models for sources, jobs, documents and vector records.

Persisted models keep the camelCase keys used in the MongoDB documents and
in the vector metadata, while Python code uses snake_case attribute names.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serialising to camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_mongo(self) -> dict[str, Any]:
        """Dump by alias, dropping an unset ``_id`` so MongoDB assigns one."""
        data = self.model_dump(by_alias=True, mode="python")
        if data.get("_id") is None:
            data.pop("_id", None)
        return data


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


class FaqEntry(CamelModel):
    """A single question/answer pair of an FAQ source."""

    id: int | str
    questions: str
    answer: str


class BaseSource(CamelModel):
    """Fields shared by every source variant."""

    id: str | None = Field(default=None, alias="_id")
    collection_id: str = ""
    name: str = ""


class FaqSource(BaseSource):
    type: Literal["faq"] = "faq"
    faqs: list[FaqEntry] = Field(default_factory=list)


class FlarumSource(BaseSource):
    type: Literal["flarum"] = "flarum"
    api_url: str
    forum_url: str
    staff_usernames: list[str] = Field(default_factory=list)


class SitemapSource(BaseSource):
    type: Literal["sitemap"] = "sitemap"
    url: str
    include_patterns: list[str] = Field(default_factory=list)
    exclude_patterns: list[str] = Field(default_factory=list)
    title_selector: str = "title"
    content_selectors: list[str] = Field(default_factory=lambda: ["body"])


class MarkdownArchiveSource(BaseSource):
    type: Literal["markdown_archive"] = "markdown_archive"
    archive_file_path: str


Source = Annotated[
    Union[FaqSource, FlarumSource, SitemapSource, MarkdownArchiveSource],
    Field(discriminator="type"),
]

_source_adapter: TypeAdapter[Source] = TypeAdapter(Source)


def parse_source(data: dict[str, Any]) -> Source:
    """Validate a raw source document into the matching variant."""
    return _source_adapter.validate_python(data)


# ---------------------------------------------------------------------------
# Jobs and collections
# ---------------------------------------------------------------------------


class JobState(str, Enum):
    WAITING = "waiting"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    STOPPED = "stopped"


class Job(CamelModel):
    """One scheduled execution of the ingestion pipeline against a source."""

    id: str | None = Field(default=None, alias="_id")
    source_id: str
    state: JobState = JobState.WAITING
    log: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def to_mongo(self) -> dict[str, Any]:
        data = super().to_mongo()
        data["state"] = self.state.value
        return data


class Collection(CamelModel):
    """A named group of sources sharing one chat surface."""

    id: str | None = Field(default=None, alias="_id")
    name: str
    description: str = ""


# ---------------------------------------------------------------------------
# Documents and segments
# ---------------------------------------------------------------------------


class Segment(CamelModel):
    """A token-bounded slice of a document, the unit that gets embedded.

    Attributes
    ----------
    text:
        The passage text as it is embedded and stored.
    token_count:
        Number of tokens in ``text``.
    embedding:
        Dense vector, empty until the embedder fills it.
    headings:
        Breadcrumb of open section titles (heading-aware splitting only).
    """

    text: str
    token_count: int
    embedding: list[float] = Field(default_factory=list)
    headings: list[str] = Field(default_factory=list)


class Document(CamelModel):
    """An extracted document and its ordered segments."""

    uri: str
    title: str
    text: str = ""
    segments: list[Segment] = Field(default_factory=list)


class VectorMetadata(CamelModel):
    source_id: str
    doc_uri: str
    doc_title: str
    segment_index: int
    token_count: int


class VectorRecord(BaseModel):
    """An (id, embedding, text, metadata) tuple stored in a vector collection."""

    id: str
    embedding: list[float]
    document: str
    metadata: VectorMetadata

    @classmethod
    def from_segment(cls, source_id: str, document: Document, index: int) -> VectorRecord:
        segment = document.segments[index]
        return cls(
            id=f"{document.uri}|{index}",
            embedding=segment.embedding,
            document=segment.text,
            metadata=VectorMetadata(
                source_id=source_id,
                doc_uri=document.uri,
                doc_title=document.title,
                segment_index=index,
                token_count=segment.token_count,
            ),
        )


# ---------------------------------------------------------------------------
# Flarum export
# ---------------------------------------------------------------------------


class FlarumPost(CamelModel):
    """A post of the export; deleted users and removed posts come through as nulls."""

    content: str | None = None
    user_name: str | None = None
    detected_lang: str | None = None


class FlarumDiscussion(CamelModel):
    discussion_id: int | str
    title: str = ""
    posts: list[FlarumPost] | None = None
