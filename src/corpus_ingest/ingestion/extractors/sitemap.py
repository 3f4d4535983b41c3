"""Web sitemaps: scrape every matching page in concurrent batches."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from fnmatch import fnmatchcase

from corpus_ingest.errors import ContentValidationError, FetchError
from corpus_ingest.ingestion.chunker import PAGE_CHUNK_SIZE
from corpus_ingest.ingestion.extractors.base import BaseExtractor
from corpus_ingest.ingestion.fetcher import fetch_batch, fetch_with_retry
from corpus_ingest.ingestion.html import HtmlExtractor
from corpus_ingest.models import Document, SitemapSource

BATCH_SIZE = 25


def _local_name(element: ET.Element) -> str:
    return element.tag.rsplit("}", 1)[-1]


def parse_sitemap(xml: str) -> list[str]:
    """Return the page URLs of a ``<urlset>``, ignoring XML namespaces.

    Only the ``<loc>`` directly under each ``<url>`` is a page; extension
    elements such as ``<image:loc>`` are skipped.  Duplicates are dropped,
    keeping the first occurrence.
    """
    try:
        root = ET.fromstring(xml)
    except ET.ParseError as exc:
        raise ContentValidationError(f"Malformed sitemap XML: {exc}") from exc
    urls: list[str] = []
    for entry in root:
        if _local_name(entry) != "url":
            continue
        for child in entry:
            if _local_name(child) == "loc" and child.text and child.text.strip():
                urls.append(child.text.strip())
                break
    return list(dict.fromkeys(urls))


def filter_urls(urls: list[str], include: list[str], exclude: list[str]) -> list[str]:
    """Keep URLs matching some *include* glob (any, if empty) and no *exclude* glob.

    Each URL is kept once, in first-seen order, so record ids stay unique.
    """
    return [
        url
        for url in dict.fromkeys(urls)
        if (not include or any(fnmatchcase(url, pattern) for pattern in include))
        and not any(fnmatchcase(url, pattern) for pattern in exclude)
    ]


class SitemapExtractor(BaseExtractor[SitemapSource]):
    """Scrapes the pages listed in a sitemap, :data:`BATCH_SIZE` at a time.

    Cancellation is checked after every batch.
    """

    def extract(self) -> list[Document]:
        settings = self.context.settings
        response = fetch_with_retry(self.source.url, session=self.context.session, timeout=settings.request_timeout)
        if not response.ok:
            raise FetchError(self.source.url, f"Could not fetch sitemap from {self.source.url} ({response.status_code})")

        urls = filter_urls(parse_sitemap(response.text), self.source.include_patterns, self.source.exclude_patterns)
        self.log(f"Scraping {len(urls)} urls from {self.source.url}")

        html_extractor = HtmlExtractor(self.source.title_selector, self.source.content_selectors)
        documents: list[Document] = []
        for start in range(0, len(urls), BATCH_SIZE):
            batch = urls[start : start + BATCH_SIZE]
            responses = fetch_batch(
                batch,
                session=self.context.session,
                timeout=settings.request_timeout,
            )
            for url, page in zip(batch, responses):
                if not page.ok:
                    self.log(f"Could not fetch html for {url} ({page.status_code})")
                    continue
                title, content = html_extractor.extract(page.text)
                documents.append(Document(uri=url, title=title, text=title + "\n" + content))
            self.log(f"Scraped {len(documents)}/{len(urls)} sites")
            self.context.cancel.raise_if_stopped()
        return documents

    def prepare(self, document: Document) -> None:
        document.segments = self.context.segmenter.recursive_segments(document.text, PAGE_CHUNK_SIZE)
