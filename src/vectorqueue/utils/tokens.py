"""Prompt token estimates."""

from functools import lru_cache
from typing import Sequence

import tiktoken

ENCODING_NAME = "cl100k_base"


@lru_cache(maxsize=1)
def _encoding() -> tiktoken.Encoding:
    return tiktoken.get_encoding(ENCODING_NAME)


def count_prompt_tokens(text: str) -> int:
    """Count tokens of a single prompt."""
    if not text:
        return 0
    return len(_encoding().encode(text, disallowed_special=()))


def count_prompt_tokens_batch(texts: Sequence[str]) -> list[int]:
    """
    Count tokens for many prompts at once.

    tiktoken encodes the batch on a thread pool, so a full intake batch is
    measured in parallel without touching any shared state.
    """
    if not texts:
        return []
    encoded = _encoding().encode_batch(list(texts), disallowed_special=())
    return [len(tokens) for tokens in encoded]
