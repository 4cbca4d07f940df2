# orchestration/assistant.py
"""Single-call editorial helpers that share the pipeline's limiter and cache.

Each helper clips its input to a fixed budget, makes one provider call
through the shared ``RateLimiter`` with retries, and, for project-level
artifacts, stores the answer in the project cache. The book planner
chats with the author, distills a ``BookPlan`` and writes the book one
chapter at a time through the same path.
"""

from __future__ import annotations

import inspect
import json
import re
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from config import settings
from core.llm_interface import CompletionProvider, Message
from core.rate_limiter import RateLimiter
from core.retry import with_retries
from prompt_renderer import render_prompt
from storage.cache_store import CacheStore
from utils.text_processing import clip_by_tokens, tail_words

from orchestration.models import BookPlan, Chapter, Project

logger = structlog.get_logger(__name__)

STYLE_GUIDE_KEY = "style_guide"
CHARACTER_BIBLE_KEY = "character_bible"
SUMMARY_KEY_PREFIX = "summary:"

STYLE_GUIDE_SYSTEM = (
    "You extract a writing style guide for consistency "
    "(voice, tense, POV, formatting, conventions)."
)
CHARACTER_BIBLE_SYSTEM = (
    "You build a structured character bible for continuity and future writing."
)
SUMMARY_SYSTEM = "You produce structured summaries and track facts for continuity."
LINE_EDIT_SYSTEM = (
    "You are a world-class line editor. Be concise, professional, and improve "
    "clarity and rhythm."
)
CONTINUE_SYSTEM = (
    "You are a bestselling novelist. Continue in the same voice, pacing, tense, "
    "and POV. Avoid clichés."
)
RESEARCH_SYSTEM = (
    "You are a research assistant for an author. Answer accurately and cite sources."
)
PLANNER_SYSTEM = (
    "You are an expert book planning assistant. Help the author develop their "
    "book idea by asking questions about genre, plot, characters, target word "
    "count, and chapter structure. Be conversational and helpful. When the author "
    "confirms they're ready, provide a complete book plan with: title, genre, "
    "target word count, number of chapters, chapter titles, plot outline, "
    "character descriptions, and writing style notes."
)
PLAN_EXTRACT_SYSTEM = (
    "Extract a structured book plan from the conversation. Return JSON with: "
    "{title, genre, targetWordCount, numChapters, chapterTitles: [], plotOutline, "
    "characterDescriptions, styleNotes}. If info is missing, use reasonable defaults."
)
PLAN_EXTRACT_REQUEST = "Extract the book plan as JSON now."
CHAPTER_RECAP_SYSTEM = "Summarize this chapter in 3-4 sentences for continuity."
CHAPTER_WRITE_FAILED_TEXT = (
    "[Error writing this chapter. Please write manually or retry.]"
)

PLOT_OUTLINE_KEY = "plot_outline"
RESEARCH_RETRY_ATTEMPTS = 1
PLANNER_RETRY_ATTEMPTS = 2
RECAP_RETRY_ATTEMPTS = 1
RECAP_SOURCE_CHARS = 2000
MAX_CHAPTER_OUTPUT_TOKENS = 4000

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def summary_key(chapter_id: str) -> str:
    return f"{SUMMARY_KEY_PREFIX}{chapter_id}"


class EditorialAssistant:
    """Editorial tasks and the book planner for one project."""

    def __init__(
        self,
        llm: CompletionProvider,
        rate_limiter: RateLimiter,
        cache_store: CacheStore,
        retry_attempts: int = settings.LLM_RETRY_ATTEMPTS,
    ) -> None:
        self.llm = llm
        self.rate_limiter = rate_limiter
        self.cache_store = cache_store
        self.retry_attempts = retry_attempts

    async def _call(
        self,
        operation: Callable[[], Awaitable[str]],
        retry_attempts: int | None = None,
    ) -> str:
        attempts = self.retry_attempts if retry_attempts is None else retry_attempts
        return await with_retries(
            lambda: self.rate_limiter.schedule(operation), attempts
        )

    async def _chat(
        self,
        messages: list[Message],
        max_tokens: int,
        retry_attempts: int | None = None,
    ) -> str:
        return await self._call(
            lambda: self.llm.complete(messages, max_tokens), retry_attempts
        )

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        retry_attempts: int | None = None,
    ) -> str:
        messages: list[Message] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        return await self._chat(messages, max_tokens, retry_attempts)

    async def build_style_guide(self, project: Project) -> str:
        project_text = project.text
        if not any(c.text.strip() for c in project.chapters):
            raise ValueError("Project is empty.")
        logger.info("Building style guide started.", project=project.title)
        prompt = render_prompt(
            "style_guide.j2", {"project_text": clip_by_tokens(project_text, 1600)}
        )
        out = await self._complete(STYLE_GUIDE_SYSTEM, prompt, 800)
        self.cache_store.set(STYLE_GUIDE_KEY, out)
        return out

    async def build_character_bible(self, project: Project) -> str:
        project_text = project.text
        if not any(c.text.strip() for c in project.chapters):
            raise ValueError("Project is empty.")
        logger.info("Building character bible started.", project=project.title)
        prompt = render_prompt(
            "character_bible.j2", {"project_text": clip_by_tokens(project_text, 1600)}
        )
        out = await self._complete(CHARACTER_BIBLE_SYSTEM, prompt, 900)
        self.cache_store.set(CHARACTER_BIBLE_KEY, out)
        return out

    async def summarize_chapter(self, chapter: Chapter) -> str:
        if not chapter.text.strip():
            raise ValueError("Chapter is empty.")
        logger.info("Chapter summary started.", chapter=chapter.id)
        prompt = render_prompt(
            "chapter_summary.j2", {"chapter_text": clip_by_tokens(chapter.text, 1200)}
        )
        out = await self._complete(SUMMARY_SYSTEM, prompt, 700)
        self.cache_store.set(summary_key(chapter.id), out)
        return out

    async def line_edit(self, text: str) -> str:
        if not text.strip():
            raise ValueError("Nothing to edit.")
        logger.info("Quick line edit started.")
        prompt = render_prompt("line_edit.j2", {"text": clip_by_tokens(text, 1200)})
        return await self._complete(LINE_EDIT_SYSTEM, prompt, 800)

    async def continue_writing(self, text: str) -> str:
        if not text.strip():
            raise ValueError("Write something first.")
        logger.info("Continue writing started.")
        prompt = render_prompt(
            "continue_writing.j2", {"window_text": tail_words(text, 900)}
        )
        return await self._complete(CONTINUE_SYSTEM, prompt, 700)

    async def research(self, question: str) -> str:
        question = question.strip()
        if not question:
            raise ValueError("Type a research question.")
        logger.info("Research started.")
        messages: list[Message] = [
            {"role": "system", "content": RESEARCH_SYSTEM},
            {"role": "user", "content": question},
        ]
        return await self._call(
            lambda: self.llm.research(messages), RESEARCH_RETRY_ATTEMPTS
        )

    async def plan_chat(self, history: list[Message], message: str) -> str:
        """Send ``message`` to the book planner and append both turns to ``history``."""
        message = message.strip()
        if not message:
            raise ValueError("Type a message.")
        logger.info("Book planner message.", turns=len(history))
        turns = [*history, {"role": "user", "content": message}]
        messages: list[Message] = [
            {"role": "system", "content": PLANNER_SYSTEM},
            *turns,
        ]
        out = await self._chat(messages, 1500, PLANNER_RETRY_ATTEMPTS)
        history[:] = [*turns, {"role": "assistant", "content": out}]
        return out

    async def extract_book_plan(self, history: list[Message]) -> BookPlan:
        if not history:
            raise ValueError("Chat with the planner first to develop a plan.")
        logger.info("Extracting book plan.", turns=len(history))
        messages: list[Message] = [
            {"role": "system", "content": PLAN_EXTRACT_SYSTEM},
            *history,
            {"role": "user", "content": PLAN_EXTRACT_REQUEST},
        ]
        reply = await self._chat(messages, 2000, PLANNER_RETRY_ATTEMPTS)
        return parse_book_plan(reply)

    def project_from_plan(self, plan: BookPlan) -> Project:
        """Empty chapters for ``plan``; its notes seed the project cache."""
        chapters = [
            Chapter(id=f"{i + 1:02d}_chapter", title=title)
            for i, title in enumerate(plan.chapter_titles)
        ]
        self.cache_store.set(STYLE_GUIDE_KEY, plan.style_notes)
        self.cache_store.set(CHARACTER_BIBLE_KEY, plan.character_descriptions)
        self.cache_store.set(PLOT_OUTLINE_KEY, plan.plot_outline)
        logger.info("Book project created.", title=plan.title, chapters=len(chapters))
        return Project(title=plan.title, chapters=chapters)

    async def write_book(
        self,
        plan: BookPlan,
        project: Project | None = None,
        on_chapter: Callable[[Chapter], Any] | None = None,
    ) -> Project:
        """Write every chapter of ``plan`` in order.

        Each chapter after the first is told a short recap of the previous
        one. A chapter that fails is given placeholder text and writing
        moves on. ``on_chapter`` is called after every chapter so the host
        can save progress.
        """
        project = project or self.project_from_plan(plan)
        total = len(project.chapters)
        output_tokens = min(MAX_CHAPTER_OUTPUT_TOKENS, plan.words_per_chapter * 2)
        previous_summary = ""
        logger.info("Writing book started.", title=project.title, chapters=total)

        for i, chapter in enumerate(project.chapters):
            context = {
                "plan": plan,
                "number": i + 1,
                "chapter_title": chapter.title,
                "previous_summary": previous_summary,
            }
            logger.info(
                "Writing chapter.", chapter=chapter.title, position=f"{i + 1}/{total}"
            )
            previous_summary = ""
            try:
                chapter.text = await self._complete(
                    render_prompt("book_chapter_system.j2", context),
                    render_prompt("book_chapter.j2", context),
                    output_tokens,
                    PLANNER_RETRY_ATTEMPTS,
                )
            except Exception as exc:
                logger.error(
                    "Error writing chapter. Continuing.",
                    chapter=chapter.title,
                    error=str(exc),
                )
                chapter.text = CHAPTER_WRITE_FAILED_TEXT
            else:
                if i < total - 1:
                    previous_summary = await self._recap(chapter)
            if on_chapter is not None:
                result = on_chapter(chapter)
                if inspect.isawaitable(result):
                    await result

        logger.info("Writing book complete.", title=project.title)
        return project

    async def _recap(self, chapter: Chapter) -> str:
        try:
            return await self._complete(
                CHAPTER_RECAP_SYSTEM,
                chapter.text[:RECAP_SOURCE_CHARS],
                300,
                RECAP_RETRY_ATTEMPTS,
            )
        except Exception as exc:
            logger.warning(
                "Chapter recap failed. Next chapter gets no recap.",
                chapter=chapter.title,
                error=str(exc),
            )
            return ""


def parse_book_plan(reply: str) -> BookPlan:
    """Read the first ``{...}`` span of ``reply`` as a plan, or fall back to defaults."""
    match = _JSON_OBJECT_RE.search(reply or "")
    try:
        data = json.loads(match.group(0) if match else reply)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Failed to parse plan JSON. Using defaults.")
        return BookPlan()
    if not isinstance(data, dict):
        logger.warning("Plan JSON is not an object. Using defaults.")
        return BookPlan()
    return BookPlan.from_dict(data)
