# orchestration/pipeline.py
"""Publishing-house review pipeline over a chunked manuscript.

Every role reviews every chunk, in role order then document order. Each
(role, chunk) result is cached under a key built from the role name, the
chunk fingerprint and the brief fingerprint, so re-running unchanged text
costs no provider calls. Results are written to the cache as soon as they
arrive; a failure part-way keeps everything finished before it.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import structlog
from config import ConfigurationError
from core.llm_interface import Message
from core.rate_limiter import RateLimiter
from core.retry import with_retries
from processing.chunker import Chunk, chunk_text
from prompt_renderer import render_prompt
from storage.cache_store import CacheStore
from utils.hashing import composite_cache_key, fingerprint

from orchestration.models import (
    DEFAULT_ROLES,
    PipelineConfig,
    PipelineReport,
    PipelineSection,
    PipelineStatus,
    Role,
)

logger = structlog.get_logger(__name__)

CompleteFn = Callable[[list[Message], int], Awaitable[str]]
SectionObserver = Callable[[PipelineSection], Any]


class PipelineStageError(Exception):
    """A (role, chunk) pair ran out of retries.

    The original provider error is chained as ``__cause__``. Sections
    finished before the failure are kept in ``partial_report``, whose
    status is ``FAILED``.
    """

    def __init__(
        self,
        role_name: str,
        chunk_position: int,
        chunk_count: int,
        partial_report: PipelineReport,
        error: Exception,
    ) -> None:
        super().__init__(
            f"{role_name} failed on chunk {chunk_position + 1}/{chunk_count}: {error}"
        )
        self.role_name = role_name
        self.chunk_position = chunk_position
        self.chunk_count = chunk_count
        self.partial_report = partial_report
        self.error = error

    @property
    def chunk_index(self) -> int:
        """1-based chunk number, as shown to the user."""
        return self.chunk_position + 1


def role_header(role: Role) -> str:
    return f"\n=== {role.name} ===\n"


def chunk_section(chunk_position: int, chunk_count: int, output: str) -> str:
    return f"\n[Chunk {chunk_position + 1}/{chunk_count}]\n{output}\n"


class PipelineOrchestrator:
    """Runs review roles over chunks through a shared rate limiter."""

    def __init__(
        self,
        complete: CompleteFn,
        rate_limiter: RateLimiter,
        cache_store: CacheStore,
    ) -> None:
        self.complete = complete
        self.rate_limiter = rate_limiter
        self.cache_store = cache_store

    async def _emit(
        self,
        report: PipelineReport,
        section: PipelineSection,
        observer: SectionObserver | None,
    ) -> None:
        report.append(section)
        if observer is None:
            return
        try:
            result = observer(section)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.error(
                "Pipeline observer failed. Continuing.",
                role_index=section.role_index,
                chunk_index=section.chunk_index,
                exc_info=True,
            )

    async def _review_chunk(
        self, role: Role, chunk: Chunk, instructions: str, config: PipelineConfig
    ) -> str:
        prompt = render_prompt(
            "pipeline_chunk.j2",
            {"brief": instructions, "role": role, "chunk_text": chunk.text},
        )
        messages: list[Message] = [{"role": "user", "content": prompt}]

        def attempt() -> Awaitable[str]:
            return self.rate_limiter.schedule(
                lambda: self.complete(messages, config.chunk_output_tokens)
            )

        return await with_retries(
            attempt,
            config.retry_attempts,
            base_delay=config.retry_base_delay,
            delay_step=config.retry_delay_step,
        )

    async def run_pipeline(
        self,
        unit_text: str,
        instructions: str,
        roles: Sequence[Role] = DEFAULT_ROLES,
        config: PipelineConfig | None = None,
        observer: SectionObserver | None = None,
    ) -> PipelineReport:
        """Review ``unit_text`` with every role and return the ordered report.

        Returns a report with status ``NO_WORK`` and no sections when the
        text produces no chunks.

        Raises:
            ConfigurationError: If ``roles`` is empty.
            PipelineStageError: If a (role, chunk) pair exhausts its retries.
        """
        config = config or PipelineConfig()
        if not roles:
            raise ConfigurationError("at least one role is required")

        chunks = chunk_text(unit_text, config.max_chunk_tokens, config.overlap_tokens)
        if not chunks:
            logger.info("Pipeline has no work: text produced no chunks.")
            return PipelineReport(status=PipelineStatus.NO_WORK)

        instructions_fingerprint = fingerprint(instructions)
        chunk_count = len(chunks)
        report = PipelineReport(chunk_count=chunk_count)
        logger.info(
            "Pipeline started.",
            chunks=chunk_count,
            roles=len(roles),
            instructions_fingerprint=instructions_fingerprint,
        )

        for role_index, role in enumerate(roles):
            await self._emit(
                report, PipelineSection(role_index, None, role_header(role)), observer
            )
            for position, chunk in enumerate(chunks):
                key = composite_cache_key(
                    role.name, chunk.fingerprint, instructions_fingerprint
                )
                cached = self.cache_store.get(key)
                if cached:
                    report.cache_hits += 1
                    logger.info(
                        "Chunk served from cache.",
                        role=role.name,
                        chunk=f"{position + 1}/{chunk_count}",
                    )
                    await self._emit(
                        report,
                        PipelineSection(role_index, position, cached, cached=True),
                        observer,
                    )
                    continue

                logger.info(
                    "Reviewing chunk.", role=role.name, chunk=f"{position + 1}/{chunk_count}"
                )
                try:
                    output = await self._review_chunk(role, chunk, instructions, config)
                except Exception as exc:
                    logger.error(
                        "Pipeline failed.",
                        role=role.name,
                        chunk=f"{position + 1}/{chunk_count}",
                        error=str(exc),
                    )
                    report.status = PipelineStatus.FAILED
                    raise PipelineStageError(
                        role.name, position, chunk_count, report, exc
                    ) from exc

                report.calls_made += 1
                section_text = chunk_section(position, chunk_count, output)
                self.cache_store.set(key, section_text)
                await self._emit(
                    report, PipelineSection(role_index, position, section_text), observer
                )

        logger.info(
            "Pipeline complete.",
            sections=len(report.sections),
            cache_hits=report.cache_hits,
            calls_made=report.calls_made,
        )
        return report
