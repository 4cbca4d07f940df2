# orchestration/cli_runner.py
"""Command-line runner wiring the pipeline to files, the provider and the cache."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Awaitable

import structlog
from config import ConfigurationError, settings
from core.llm_interface import LLMService
from core.rate_limiter import RateLimiter
from rich.console import Console
from storage.cache_store import InMemoryCacheStore, JsonFileCacheStore
from storage.file_manager import FileManager
from ui.rich_display import RichDisplayManager
from utils.logging import setup_logging

from orchestration.assistant import EditorialAssistant
from orchestration.models import (
    DEFAULT_ROLES,
    Chapter,
    PipelineConfig,
    PipelineStatus,
    Project,
)
from orchestration.pipeline import PipelineOrchestrator, PipelineStageError

logger = structlog.get_logger(__name__)

console = Console()

PLANNER_COMMANDS = ("plan", "generate-book")


def _select_chapter(project: Project, chapter_id: str | None) -> Chapter:
    if chapter_id is None:
        if not project.chapters:
            raise ValueError("Project has no chapters.")
        return project.chapters[0]
    chapter = project.get_chapter(chapter_id)
    if chapter is None:
        raise ValueError(f"Unknown chapter '{chapter_id}'.")
    return chapter


async def _run_pipeline_command(
    args: argparse.Namespace,
    files: FileManager,
    project: Project,
    orchestrator: PipelineOrchestrator,
    llm: LLMService,
) -> int:
    if args.scope == "chapter":
        text = _select_chapter(project, args.chapter).text
    else:
        text = project.text
    if not any(c.text.strip() for c in project.chapters) or not text.strip():
        console.print("Nothing to run pipeline on.")
        return 0

    brief = (args.brief if args.brief is not None else settings.PIPELINE_BRIEF).strip()
    display = RichDisplayManager(DEFAULT_ROLES, request_counter=llm)
    display.start(project.title)
    try:
        try:
            report = await orchestrator.run_pipeline(
                text, brief, DEFAULT_ROLES, PipelineConfig(), observer=display.observe
            )
        finally:
            await display.stop()
    except PipelineStageError as err:
        partial_path = await files.save_report(
            project, err.partial_report.text, "pipeline_report.partial.txt"
        )
        logger.error(
            "Pipeline failed.",
            role=err.role_name,
            chunk=err.chunk_index,
            partial_report=partial_path,
        )
        console.print(
            f"Pipeline failed at {err.role_name}, chunk {err.chunk_index}/"
            f"{err.chunk_count}: {err.error}. Completed sections are cached; "
            f"re-run to resume. Partial report: {partial_path}"
        )
        return 1

    if report.status is PipelineStatus.NO_WORK:
        console.print("No chunks produced.")
        return 0

    path = await files.save_report(project, report.text, args.output)
    console.print(report.text, markup=False, highlight=False)
    console.print(
        f"Pipeline complete: {report.calls_made} calls, "
        f"{report.cache_hits} cached. Report saved to {path}"
    )
    return 0


async def _run_plan_command(
    args: argparse.Namespace, files: FileManager, assistant: EditorialAssistant
) -> int:
    history: list[dict[str, str]] = []
    if args.reset:
        await files.save_chat(args.session, history)
        console.print(f"Planner chat for '{args.session}' cleared.")
        if not args.message:
            return 0
    else:
        history = await files.load_chat(args.session)
    reply = await assistant.plan_chat(history, args.message or "")
    await files.save_chat(args.session, history)
    console.print(reply, markup=False, highlight=False)
    return 0


async def _run_generate_book_command(
    args: argparse.Namespace,
    files: FileManager,
    llm: LLMService,
    rate_limiter: RateLimiter,
) -> int:
    history = await files.load_chat(args.session)
    planner = EditorialAssistant(llm, rate_limiter, InMemoryCacheStore())
    plan = await planner.extract_book_plan(history)

    book_cache = JsonFileCacheStore(files.cache_path_for(Project(title=plan.title)))
    assistant = EditorialAssistant(llm, rate_limiter, book_cache)
    project = assistant.project_from_plan(plan)
    plan_path = await files.save_plan(project, plan.to_dict())
    for chapter in project.chapters:
        await files.save_chapter(project, chapter)
    console.print(
        f"Project '{plan.title}' created with {plan.num_chapters} chapters. "
        f"Plan saved to {plan_path}"
    )
    if not args.write:
        return 0

    def on_chapter(chapter: Chapter) -> Awaitable[str]:
        console.print(f"Finished {chapter.title}.")
        return files.save_chapter(project, chapter)

    await assistant.write_book(plan, project, on_chapter=on_chapter)
    console.print(
        f"Book '{plan.title}' complete. Chapters in {files.chapters_dir_for(project)}"
    )
    return 0


async def _run(args: argparse.Namespace) -> int:
    files = FileManager()
    if args.command == "research":
        project = Project(title="research")
    elif args.command in PLANNER_COMMANDS:
        project = Project(title=args.session)
    else:
        project = await files.load_project(args.path)

    cache_store = JsonFileCacheStore(files.cache_path_for(project))
    if args.command == "clear-cache":
        cache_store.clear()
        console.print(f"Cache cleared for {project.title}.")
        return 0

    llm = LLMService()
    # One limiter per process, shared by every caller below.
    rate_limiter = RateLimiter(
        settings.MIN_INTERVAL_MS, settings.MAX_CONCURRENT_LLM_CALLS
    )
    try:
        if args.command == "pipeline":
            orchestrator = PipelineOrchestrator(llm.complete, rate_limiter, cache_store)
            return await _run_pipeline_command(args, files, project, orchestrator, llm)

        if args.command == "generate-book":
            return await _run_generate_book_command(args, files, llm, rate_limiter)

        assistant = EditorialAssistant(llm, rate_limiter, cache_store)
        if args.command == "plan":
            return await _run_plan_command(args, files, assistant)
        if args.command == "style-guide":
            out = await assistant.build_style_guide(project)
        elif args.command == "character-bible":
            out = await assistant.build_character_bible(project)
        elif args.command == "summary":
            out = await assistant.summarize_chapter(
                _select_chapter(project, args.chapter)
            )
        elif args.command == "line-edit":
            out = await assistant.line_edit(_select_chapter(project, args.chapter).text)
        elif args.command == "continue":
            out = await assistant.continue_writing(
                _select_chapter(project, args.chapter).text
            )
        elif args.command == "research":
            out = await assistant.research(args.question)
        else:  # pragma: no cover - argparse restricts choices
            raise ValueError(f"Unknown command '{args.command}'.")
        console.print(out, markup=False, highlight=False)
        return 0
    finally:
        logger.info(
            "Provider usage for this run.",
            requests=llm.request_count,
            **llm.usage.as_dict(),
        )
        await llm.aclose()


def run(args: argparse.Namespace) -> int:
    """Set up logging and run the requested command. Returns an exit code."""
    setup_logging(args.log_level)
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        logger.info("Shutting down due to KeyboardInterrupt...")
        return 130
    except (ConfigurationError, ValueError, OSError) as err:
        logger.error("Command failed.", command=args.command, error=str(err))
        console.print(f"Error: {err}")
        return 2
    except Exception as err:  # pragma: no cover - entry point catch
        logger.critical(
            "Unhandled exception.", command=args.command, error=str(err), exc_info=True
        )
        return 1
