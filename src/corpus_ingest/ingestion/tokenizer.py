"""Token counting with the embedding model's subword encoder."""

from __future__ import annotations

from functools import lru_cache

import tiktoken

ENCODING_NAME = "cl100k_base"


@lru_cache(maxsize=1)
def get_encoding() -> tiktoken.Encoding:
    return tiktoken.get_encoding(ENCODING_NAME)


def tokenize(text: str) -> list[int]:
    """Encode *text* into token ids."""
    return get_encoding().encode(text, disallowed_special=())


def count_tokens(text: str) -> int:
    return len(tokenize(text))
