"""Flarum forum exports: one document per English post."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from corpus_ingest.errors import ContentValidationError, FetchError
from corpus_ingest.ingestion.extractors.base import BaseExtractor
from corpus_ingest.ingestion.fetcher import fetch_with_retry
from corpus_ingest.models import Document, FlarumDiscussion, FlarumSource

PROGRESS_EVERY = 100
ENGLISH = "en"

_discussions_adapter: TypeAdapter[list[FlarumDiscussion]] = TypeAdapter(list[FlarumDiscussion])


def discussion_base_url(forum_url: str) -> str:
    """Return the forum's discussion URL prefix, always ending in ``/d/``."""
    if forum_url.endswith("/d/"):
        return forum_url
    return forum_url.rstrip("/") + "/d/"


class FlarumExtractor(BaseExtractor[FlarumSource]):
    """Fetches the full export and keeps English posts, optionally staff-only.

    Posts are segmented during extraction.  The resulting document list is
    also written to ``{data_dir}/{source_id}.json`` before embedding.
    """

    def extract(self) -> list[Document]:
        discussions = self._fetch_discussions()
        self.log(f"{len(discussions)} discussions")

        staff = {name.lower() for name in self.source.staff_usernames if name}
        base_url = discussion_base_url(self.source.forum_url)
        segmenter = self.context.segmenter

        documents: list[Document] = []
        english_posts = 0
        non_english_posts = 0
        processed = 0
        for discussion in discussions:
            if not discussion.posts:
                self.log(f"No posts in discussion {discussion.discussion_id} - {discussion.title}")
                continue
            discussion_uri = f"{base_url}{discussion.discussion_id}"
            post_number = 1
            for post in discussion.posts:
                if post.detected_lang != ENGLISH:
                    non_english_posts += 1
                    continue
                english_posts += 1
                if staff and (post.user_name or "").lower() not in staff:
                    continue
                if not post.content or not post.content.strip():
                    continue

                documents.append(
                    Document(
                        uri=f"{discussion_uri}/{post_number}",
                        title=discussion.title,
                        segments=segmenter.bounded_segments(discussion.title + "\n" + post.content),
                    )
                )
                post_number += 1

            processed += 1
            if processed % PROGRESS_EVERY == 0:
                self.log(f"Processed {processed}/{len(discussions)} discussions")

        self.log(f"english: {english_posts}, non-english: {non_english_posts}")
        self._write_snapshot(documents)
        return documents

    # -- internals ------------------------------------------------------------

    def _fetch_discussions(self) -> list[FlarumDiscussion]:
        self.log("Fetching Flarum dump, this may take a while")
        response = fetch_with_retry(
            self.source.api_url,
            session=self.context.session,
            timeout=self.context.settings.request_timeout,
        )
        if not response.ok:
            raise FetchError(
                self.source.api_url,
                f"Could not fetch Flarum forum dump from {self.source.api_url}\n{response.text}",
            )
        try:
            return _discussions_adapter.validate_python(response.json())
        except (ValueError, ValidationError) as exc:
            raise ContentValidationError(f"Malformed Flarum dump from {self.source.api_url}: {exc}") from exc

    def _write_snapshot(self, documents: list[Document]) -> Path:
        path = Path(self.context.settings.data_dir) / f"{self.source_id}.json"
        self.log(f"Writing docs to {path}")
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = [doc.model_dump(by_alias=True) for doc in documents]
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        return path
