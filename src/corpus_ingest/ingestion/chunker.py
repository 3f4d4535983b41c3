"""Text chunking strategies.

Two strategies share one :class:`TextSegmenter`:

* **flat recursive splitting**: LangChain's ``RecursiveCharacterTextSplitter``
  with a character budget, used for web pages and forum posts;
* **heading-aware splitting**: walks a markdown document line by line,
  keeping a breadcrumb of the open ``#`` headings and prefixing every
  passage with it.

Character budgets stand in for token budgets at roughly
:data:`CHARS_PER_TOKEN` characters per token, so a 1024-character chunk
lands well under the 500-token ceiling for ordinary prose.  Only the
ceiling itself is measured in real tokens.
"""

from __future__ import annotations

import re
from typing import Callable

from langchain_text_splitters import RecursiveCharacterTextSplitter

from corpus_ingest.ingestion import tokenizer
from corpus_ingest.models import Segment

SEPARATORS = ["\n\n", "\n", ". ", " ", ""]
CHARS_PER_TOKEN = 4
MAX_SEGMENT_TOKENS = 500
LONG_SECTION_CHUNK_SIZE = 1024
PAGE_CHUNK_SIZE = 512

_HEADING_RE = re.compile(r"^(#+)(?=\s|$)")


def split_text(text: str, chunk_size: int = PAGE_CHUNK_SIZE) -> list[str]:
    """Split *text* into pieces of at most *chunk_size* characters.

    Parameters
    ----------
    text:
        Raw text to split.
    chunk_size:
        Maximum number of characters per piece.  Separators are tried
        from paragraph down to single characters, so the bound holds for
        any input.

    Returns
    -------
    list[str]
        Ordered pieces, without overlap.
    """
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=0,
        length_function=len,
        separators=SEPARATORS,
    )
    return splitter.split_text(text)


def heading_depth(line: str) -> int:
    """Return the number of leading ``#`` of a markdown heading, 0 otherwise."""
    match = _HEADING_RE.match(line)
    return len(match.group(1)) if match else 0


def heading_title(line: str) -> str:
    return line.strip().lstrip("#").strip()


class TextSegmenter:
    """Turns raw text into :class:`Segment` objects with token counts.

    Parameters
    ----------
    count_tokens:
        Token counter; defaults to the ``cl100k_base`` encoder.
    max_tokens:
        Ceiling used to decide whether a passage must be split.
    section_chunk_size:
        Character budget for sub-chunks of sections over the ceiling.
    """

    def __init__(
        self,
        count_tokens: Callable[[str], int] = tokenizer.count_tokens,
        *,
        max_tokens: int = MAX_SEGMENT_TOKENS,
        section_chunk_size: int = LONG_SECTION_CHUNK_SIZE,
    ) -> None:
        self.count_tokens = count_tokens
        self.max_tokens = max_tokens
        self.section_chunk_size = section_chunk_size

    # -- flat -----------------------------------------------------------------

    def segment(self, text: str, headings: list[str] | None = None) -> Segment:
        return Segment(text=text, token_count=self.count_tokens(text), headings=list(headings or []))

    def recursive_segments(self, text: str, chunk_size: int = PAGE_CHUNK_SIZE) -> list[Segment]:
        """Flat recursive split; each piece carries its true token count."""
        return [self.segment(piece) for piece in split_text(text, chunk_size)]

    def bounded_segments(self, text: str) -> list[Segment]:
        """Keep *text* whole when it fits the ceiling, else split it flat."""
        whole = self.segment(text)
        if whole.token_count <= self.max_tokens:
            return [whole]
        return self.recursive_segments(text, self.section_chunk_size)

    # -- heading-aware --------------------------------------------------------

    def split_by_headings(self, title: str, text: str) -> list[Segment]:
        """Split a markdown document into breadcrumb-prefixed segments.

        Each ``#`` heading closes every open heading of the same or greater
        depth before it is pushed, so ``# A / ## B / # C`` yields the
        breadcrumbs ``[A]``, ``[A, B]`` and ``[C]``.
        """
        segments: list[Segment] = []
        breadcrumb: list[tuple[int, str]] = []
        body: list[str] = []

        for line in text.split("\n"):
            depth = heading_depth(line.strip())
            if depth == 0:
                body.append(line)
                continue
            segments.extend(self._flush(title, breadcrumb, body))
            while breadcrumb and breadcrumb[-1][0] >= depth:
                breadcrumb.pop()
            breadcrumb.append((depth, line.strip()))
            body = []

        segments.extend(self._flush(title, breadcrumb, body))
        return segments

    def _flush(self, title: str, breadcrumb: list[tuple[int, str]], body: list[str]) -> list[Segment]:
        content = "\n".join(body).strip()
        # A heading with no body still yields its breadcrumb as a segment.
        if not content and not breadcrumb:
            return []

        headings = [heading_title(line) for _, line in breadcrumb]
        prefix = "\n".join(part for part in [title, *(line for _, line in breadcrumb)] if part)

        whole = self.segment(_join(prefix, content), headings)
        if whole.token_count <= self.max_tokens:
            return [whole]

        # The prefix is re-applied per sub-chunk, so split the body alone.
        return [
            self.segment(_join(prefix, piece), headings)
            for piece in split_text(content, self.section_chunk_size)
        ]


def _join(prefix: str, content: str) -> str:
    return f"{prefix}\n{content}".strip() if prefix else content.strip()
