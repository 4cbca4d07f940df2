# orchestration/models.py
"""Shared dataclasses for the review pipeline and its host."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from config import ConfigurationError, settings


@dataclass(frozen=True)
class Role:
    """A review stage applied to every chunk of a manuscript."""

    name: str
    task: str


DEFAULT_ROLES: tuple[Role, ...] = (
    Role(
        "Developmental Editor",
        "Plot, pacing, structure, stakes, character arcs, logic gaps.",
    ),
    Role(
        "Line Editor",
        "Clarity, flow, voice, repetition, imagery, dialogue quality.",
    ),
    Role(
        "Copy Editor",
        "Grammar, punctuation, spelling, continuity, formatting issues.",
    ),
    Role(
        "Market Editor",
        "Hook strength, genre fit, positioning, blurb angles, comp titles.",
    ),
)


@dataclass(frozen=True)
class PipelineConfig:
    """Budgets for one pipeline run. Validated on construction."""

    max_chunk_tokens: int = settings.MAX_CHUNK_TOKENS
    overlap_tokens: int = settings.CHUNK_OVERLAP_TOKENS
    chunk_output_tokens: int = settings.CHUNK_OUTPUT_TOKENS
    retry_attempts: int = settings.LLM_RETRY_ATTEMPTS
    retry_base_delay: float = settings.LLM_RETRY_BASE_DELAY_SECONDS
    retry_delay_step: float = settings.LLM_RETRY_DELAY_STEP_SECONDS

    def __post_init__(self) -> None:
        if self.retry_base_delay < 0 or self.retry_delay_step < 0:
            raise ConfigurationError("retry delays must be >= 0")
        if self.max_chunk_tokens < 1:
            raise ConfigurationError("max_chunk_tokens must be positive")
        if self.overlap_tokens < 0:
            raise ConfigurationError("overlap_tokens must be >= 0")
        if self.chunk_output_tokens < 1:
            raise ConfigurationError("chunk_output_tokens must be positive")
        if self.retry_attempts < 0:
            raise ConfigurationError("retry_attempts must be >= 0")


class PipelineStatus(str, Enum):
    COMPLETED = "completed"
    NO_WORK = "no_work"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineSection:
    """One entry of a report: a role header or a reviewed chunk.

    ``chunk_index`` is ``None`` for role headers and 0-based otherwise.
    """

    role_index: int
    chunk_index: int | None
    text: str
    cached: bool = False

    @property
    def is_header(self) -> bool:
        return self.chunk_index is None


@dataclass
class PipelineReport:
    """Ordered sections produced by a pipeline run."""

    sections: list[PipelineSection] = field(default_factory=list)
    status: PipelineStatus = PipelineStatus.COMPLETED
    chunk_count: int = 0
    cache_hits: int = 0
    calls_made: int = 0

    def append(self, section: PipelineSection) -> None:
        self.sections.append(section)

    @property
    def text(self) -> str:
        return "\n".join(section.text for section in self.sections)


@dataclass
class Chapter:
    """A chapter of a manuscript as supplied by the host."""

    id: str
    title: str
    text: str = ""


@dataclass
class Project:
    """An ordered collection of chapters."""

    title: str
    chapters: list[Chapter] = field(default_factory=list)

    def get_chapter(self, chapter_id: str) -> Chapter | None:
        for chapter in self.chapters:
            if chapter.id == chapter_id:
                return chapter
        return None

    @property
    def text(self) -> str:
        return "\n\n".join(f"# {c.title}\n\n{c.text}" for c in self.chapters)


DEFAULT_BOOK_CHAPTERS = 20
DEFAULT_BOOK_WORDS = 60000


@dataclass
class BookPlan:
    """Structured plan distilled from a planning conversation."""

    title: str = "Untitled Book"
    genre: str = "Fiction"
    target_word_count: int = DEFAULT_BOOK_WORDS
    num_chapters: int = DEFAULT_BOOK_CHAPTERS
    chapter_titles: list[str] = field(default_factory=list)
    plot_outline: str = "To be developed"
    character_descriptions: str = "To be developed"
    style_notes: str = "Engaging narrative style"

    def __post_init__(self) -> None:
        self.num_chapters = max(1, self.num_chapters)
        self.target_word_count = max(1, self.target_word_count)
        given = list(self.chapter_titles[: self.num_chapters])
        given += [""] * (self.num_chapters - len(given))
        self.chapter_titles = [
            (str(title).strip() if title else "") or f"Chapter {i + 1}"
            for i, title in enumerate(given)
        ]

    @property
    def words_per_chapter(self) -> int:
        return self.target_word_count // self.num_chapters

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BookPlan:
        """Build a plan from the model's JSON keys, keeping defaults for gaps."""
        defaults = cls()

        def text(key: str, fallback: str) -> str:
            value = data.get(key)
            if isinstance(value, (dict, list)):
                return json.dumps(value, ensure_ascii=False)
            return str(value).strip() if value else fallback

        def number(key: str, fallback: int) -> int:
            try:
                return int(data.get(key) or fallback)
            except (TypeError, ValueError):
                return fallback

        titles = data.get("chapterTitles")
        return cls(
            title=text("title", defaults.title),
            genre=text("genre", defaults.genre),
            target_word_count=number("targetWordCount", DEFAULT_BOOK_WORDS),
            num_chapters=number("numChapters", DEFAULT_BOOK_CHAPTERS),
            chapter_titles=titles if isinstance(titles, list) else [],
            plot_outline=text("plotOutline", defaults.plot_outline),
            character_descriptions=text(
                "characterDescriptions", defaults.character_descriptions
            ),
            style_notes=text("styleNotes", defaults.style_notes),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "genre": self.genre,
            "targetWordCount": self.target_word_count,
            "numChapters": self.num_chapters,
            "chapterTitles": list(self.chapter_titles),
            "plotOutline": self.plot_outline,
            "characterDescriptions": self.character_descriptions,
            "styleNotes": self.style_notes,
        }
