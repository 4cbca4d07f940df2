# processing/chunker.py
"""Split long manuscripts into bounded, overlapping chunks.

Paragraphs are packed greedily up to the token budget. Each new chunk is
seeded with a short tail of the previous one so reviewers keep local
context across the boundary. A single paragraph that is larger than the
budget on its own is cut by characters instead.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import structlog
from config import ConfigurationError, settings
from utils.hashing import fingerprint
from utils.text_processing import (
    estimate_tokens,
    normalize_line_endings,
    split_paragraphs,
    tail_within_tokens,
)

logger = structlog.get_logger(__name__)

PARAGRAPH_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class Chunk:
    """One segment of a manuscript, ready to be sent for review."""

    text: str
    estimated_tokens: int
    fingerprint: str

    @classmethod
    def from_text(cls, text: str) -> Chunk:
        return cls(
            text=text,
            estimated_tokens=estimate_tokens(text),
            fingerprint=fingerprint(text),
        )


def _join(head: str, paragraph: str) -> str:
    return f"{head}{PARAGRAPH_SEPARATOR}{paragraph}" if head else paragraph


def _seed_buffer(previous: str, paragraph: str, max_tokens: int, overlap: int) -> str:
    """Start a new buffer with an overlap tail of ``previous`` plus ``paragraph``.

    The tail shrinks when the full overlap would push a paragraph that fits
    on its own over the budget.
    """
    tail = tail_within_tokens(previous, overlap)
    seeded = _join(tail, paragraph)
    if not tail or estimate_tokens(seeded) <= max_tokens:
        return seeded

    paragraph_tokens = estimate_tokens(paragraph)
    if paragraph_tokens > max_tokens:
        return seeded

    separator_tokens = math.ceil(len(PARAGRAPH_SEPARATOR) / settings.CHARS_PER_TOKEN)
    # No room left means no tail; the size bound wins over the overlap.
    room = max_tokens - paragraph_tokens - separator_tokens
    return _join(tail_within_tokens(tail, room), paragraph)


def chunk_text(
    text: str | None,
    max_tokens: int | None = None,
    overlap_tokens: int | None = None,
    *,
    hard_split_min_chars: int | None = None,
    hard_split_ratio: float | None = None,
) -> list[Chunk]:
    """Split ``text`` into document-ordered chunks.

    Args:
        text: Raw manuscript text. Line endings are normalized first.
        max_tokens: Estimated token budget per chunk.
        overlap_tokens: Budget for the tail carried into the next chunk.
        hard_split_min_chars: Smallest character cut for oversized paragraphs.
        hard_split_ratio: Fraction of the buffer cut off per hard split.

    Returns:
        Chunks in document order. Empty or whitespace-only input gives ``[]``.

    Raises:
        ConfigurationError: If a budget is non-positive.
    """
    max_tokens = settings.MAX_CHUNK_TOKENS if max_tokens is None else max_tokens
    overlap = settings.CHUNK_OVERLAP_TOKENS if overlap_tokens is None else overlap_tokens
    min_cut = (
        settings.HARD_SPLIT_MIN_CHARS
        if hard_split_min_chars is None
        else hard_split_min_chars
    )
    ratio = settings.HARD_SPLIT_RATIO if hard_split_ratio is None else hard_split_ratio

    if max_tokens < 1:
        raise ConfigurationError(f"max_tokens must be positive, got {max_tokens}")
    if overlap < 0:
        raise ConfigurationError(f"overlap_tokens must be >= 0, got {overlap}")
    if min_cut < 1:
        raise ConfigurationError(
            f"hard_split_min_chars must be positive, got {min_cut}"
        )
    if not 0 < ratio < 1:
        raise ConfigurationError(f"hard_split_ratio must be in (0, 1), got {ratio}")

    normalized = normalize_line_endings(text).strip()
    if not normalized:
        return []

    chunks: list[Chunk] = []
    buffer = ""
    hard_splits = 0

    def flush(content: str) -> None:
        stripped = content.strip()
        if stripped:
            chunks.append(Chunk.from_text(stripped))

    for paragraph in split_paragraphs(normalized):
        candidate = _join(buffer, paragraph)
        if estimate_tokens(candidate) <= max_tokens:
            buffer = candidate
            continue

        flush(buffer)
        buffer = _seed_buffer(buffer, paragraph, max_tokens, overlap)

        while estimate_tokens(buffer) > max_tokens:
            cut = max(min_cut, math.floor(len(buffer) * ratio))
            flush(buffer[:cut])
            buffer = buffer[cut:].strip()
            hard_splits += 1

    flush(buffer)

    logger.debug(
        "Chunked text.",
        chars=len(normalized),
        chunks=len(chunks),
        hard_splits=hard_splits,
        max_tokens=max_tokens,
        overlap_tokens=overlap,
    )
    return chunks
