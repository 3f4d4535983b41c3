"""HTML normalisation and selector-based text extraction."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

NOISE_TAGS = ["script", "table", "style"]


def clean_up_text(text: str) -> str:
    """Collapse whitespace while keeping paragraph breaks."""
    text = re.sub(r"[^\S\r\n]+", " ", text)       # collapse spaces (keep newlines)
    text = re.sub(r"(\r?\n|\r) +", "\n", text)     # no indentation after newlines
    text = re.sub(r"(\r?\n|\r){3,}", "\n\n", text)  # max two consecutive newlines
    return text.strip()


def normalize_html(html: str) -> BeautifulSoup:
    """Parse *html* and drop script, table and style subtrees."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(NOISE_TAGS):
        tag.decompose()
    return soup


def select_text(soup: BeautifulSoup, selector: str) -> list[str]:
    """Return the cleaned text of every node matching the CSS *selector*."""
    texts: list[str] = []
    for node in soup.select(selector):
        text = clean_up_text(node.get_text())
        if text:
            texts.append(text)
    return texts


class HtmlExtractor:
    """Pulls a title and body text out of a page via CSS selectors.

    Parameters
    ----------
    title_selector:
        Selector whose matches form the title (joined by newlines).
    content_selectors:
        Selectors evaluated in order; their non-empty results are
        concatenated into the body.
    """

    def __init__(self, title_selector: str, content_selectors: list[str]) -> None:
        self.title_selector = title_selector
        self.content_selectors = content_selectors

    def extract(self, html: str) -> tuple[str, str]:
        soup = normalize_html(html)
        title = "\n".join(select_text(soup, self.title_selector)) if self.title_selector else ""
        parts = ["\n".join(select_text(soup, selector)) for selector in self.content_selectors]
        content = "\n".join(part for part in parts if part)
        return title, content
