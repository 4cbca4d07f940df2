# utils/__init__.py
"""General utility functions for the Author House pipeline."""

from .hashing import composite_cache_key, fingerprint
from .text_processing import (
    clip_by_tokens,
    estimate_tokens,
    normalize_line_endings,
    split_paragraphs,
    tail_words,
    tail_within_tokens,
)

__all__ = [
    "clip_by_tokens",
    "composite_cache_key",
    "estimate_tokens",
    "fingerprint",
    "normalize_line_endings",
    "split_paragraphs",
    "tail_words",
    "tail_within_tokens",
]
