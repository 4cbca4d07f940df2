# utils/text_processing.py
"""Cheap text measurements and slicing helpers used for sizing decisions."""

from __future__ import annotations

import math
import re

from config import settings

_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")
_WHITESPACE_RE = re.compile(r"\s+")


def estimate_tokens(text: str | None) -> int:
    """Approximate token count for English prose.

    Only meant for sizing chunks and clipping prompts, never for billing.
    Whitespace-only input counts as zero.
    """
    chars = len((text or "").strip())
    if not chars:
        return 0
    return math.ceil(chars / settings.CHARS_PER_TOKEN)


def normalize_line_endings(text: str | None) -> str:
    return (text or "").replace("\r\n", "\n").replace("\r", "\n")


def split_paragraphs(text: str) -> list[str]:
    """Split normalized text on runs of blank lines, dropping empty pieces."""
    return [p.strip() for p in _PARAGRAPH_BREAK_RE.split(text) if p.strip()]


def clip_by_tokens(text: str | None, max_tokens: int, min_chars: int = 1000) -> str:
    """Keep a proportional prefix of ``text`` when it exceeds ``max_tokens``."""
    trimmed = (text or "").strip()
    if not trimmed:
        return ""
    estimated = estimate_tokens(trimmed)
    if estimated <= max_tokens:
        return trimmed
    ratio = max_tokens / estimated
    target_chars = max(min_chars, math.floor(len(trimmed) * ratio))
    return trimmed[:target_chars]


def tail_words(text: str | None, n: int) -> str:
    """Return the last ``n`` whitespace-separated words of ``text``."""
    words = [w for w in _WHITESPACE_RE.split(text or "") if w]
    if n <= 0:
        return ""
    return " ".join(words[-n:])


def tail_within_tokens(text: str, max_tokens: int) -> str:
    """Trailing slice of ``text`` whose estimate stays within ``max_tokens``.

    The slice starts on a word boundary when one is available so the seeded
    overlap does not open mid-word.
    """
    if max_tokens <= 0 or not text.strip():
        return ""
    max_chars = math.floor(max_tokens * settings.CHARS_PER_TOKEN)
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text.strip()
    tail = text[len(text) - max_chars :]
    if not text[len(text) - max_chars - 1].isspace():
        boundary = _WHITESPACE_RE.search(tail)
        if boundary and boundary.end() < len(tail):
            tail = tail[boundary.end() :]
    return tail.strip()
