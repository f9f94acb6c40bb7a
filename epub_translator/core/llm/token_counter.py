"""
Token counting with tiktoken, used when an API response omits usage figures.
"""

from functools import lru_cache

import tiktoken

DEFAULT_ENCODING = "cl100k_base"


@lru_cache(maxsize=16)
def _encoding_for(model: str) -> "tiktoken.Encoding":
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding(DEFAULT_ENCODING)


def count_tokens(text: str, model: str = "") -> int:
    """Number of tokens `text` encodes to for `model` (cl100k_base for unknown models)."""
    if not text:
        return 0
    return len(_encoding_for(model).encode(text, disallowed_special=()))
