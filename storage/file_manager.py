# storage/file_manager.py
"""Utility class for asynchronous manuscript and report file operations."""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any

import structlog
from config import project_output_dir, settings
from orchestration.models import Chapter, Project

logger = structlog.get_logger(__name__)

PLANNER_CHAT_FILE = "planner_chat.json"
BOOK_PLAN_FILE = "book_plan.json"
CHAPTERS_DIR = "chapters"


class FileManager:
    """Load manuscripts from disk and write pipeline artifacts."""

    def __init__(
        self,
        base_output_dir: str = settings.BASE_OUTPUT_DIR,
        chapter_suffixes: tuple[str, ...] = settings.CHAPTER_FILE_SUFFIXES,
    ) -> None:
        self.base_output_dir = base_output_dir
        self.chapter_suffixes = chapter_suffixes

    def output_dir_for(self, project: Project) -> str:
        return project_output_dir(project.title, self.base_output_dir)

    def cache_path_for(self, project: Project) -> str:
        return os.path.join(self.output_dir_for(project), settings.PROJECT_CACHE_FILE)

    async def load_project(self, path: str) -> Project:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._load_project_sync, path)

    def _load_project_sync(self, path: str) -> Project:
        """Read a single chapter file or a directory of chapter files.

        Chapters in a directory are ordered by file name. A leading
        ``# Heading`` line becomes the chapter title.
        """
        path = os.path.abspath(path)
        if os.path.isdir(path):
            names = sorted(
                name
                for name in os.listdir(path)
                if name.lower().endswith(self.chapter_suffixes)
                and os.path.isfile(os.path.join(path, name))
            )
            chapters = [
                self._read_chapter_sync(os.path.join(path, name)) for name in names
            ]
            title = os.path.basename(path.rstrip(os.sep))
        else:
            chapters = [self._read_chapter_sync(path)]
            title = os.path.splitext(os.path.basename(path))[0]

        logger.info("Loaded project.", title=title, chapters=len(chapters))
        return Project(title=title, chapters=chapters)

    def _read_chapter_sync(self, file_path: str) -> Chapter:
        with open(file_path, encoding="utf-8") as f:
            raw = f.read()
        chapter_id = os.path.splitext(os.path.basename(file_path))[0]
        title = chapter_id.replace("_", " ").replace("-", " ").strip() or chapter_id

        lines = raw.replace("\r\n", "\n").split("\n")
        for i, line in enumerate(lines):
            if not line.strip():
                continue
            if line.startswith("# "):
                title = line[2:].strip() or title
                raw = "\n".join(lines[i + 1 :]).strip("\n")
            break
        return Chapter(id=chapter_id, title=title, text=raw)

    async def save_report(
        self, project: Project, report_text: str, file_name: str | None = None
    ) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self._save_text_sync, project, report_text, file_name
        )

    def _save_text_sync(
        self, project: Project, text: str, file_name: str | None
    ) -> str:
        file_path = os.path.join(
            self.output_dir_for(project), file_name or settings.REPORT_FILE
        )
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(text)
        logger.info("Saved report.", path=file_path, chars=len(text))
        return file_path

    def chat_path_for(self, session: str) -> str:
        return os.path.join(
            project_output_dir(session, self.base_output_dir), PLANNER_CHAT_FILE
        )

    async def load_chat(self, session: str) -> list[dict[str, str]]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._load_chat_sync, session)

    def _load_chat_sync(self, session: str) -> list[dict[str, str]]:
        path = self.chat_path_for(session)
        if not os.path.exists(path):
            return []
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            logger.warning(
                "Planner chat file does not hold a list. Ignoring.", path=path
            )
            return []
        return [
            {"role": str(m["role"]), "content": str(m["content"])}
            for m in data
            if isinstance(m, dict) and "role" in m and "content" in m
        ]

    async def save_chat(self, session: str, history: list[dict[str, str]]) -> str:
        text = json.dumps(history, ensure_ascii=False, indent=2)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self._write_sync, self.chat_path_for(session), text
        )

    async def save_plan(self, project: Project, plan: dict[str, Any]) -> str:
        text = json.dumps(plan, ensure_ascii=False, indent=2)
        path = os.path.join(self.output_dir_for(project), BOOK_PLAN_FILE)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._write_sync, path, text)

    def chapters_dir_for(self, project: Project) -> str:
        return os.path.join(self.output_dir_for(project), CHAPTERS_DIR)

    async def save_chapter(self, project: Project, chapter: Chapter) -> str:
        """Write ``chapter`` so ``load_project`` reads it back with its title."""
        path = os.path.join(self.chapters_dir_for(project), f"{chapter.id}.md")
        text = f"# {chapter.title}\n\n{chapter.text}\n"
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._write_sync, path, text)

    def _write_sync(self, file_path: str, text: str) -> str:
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(text)
        logger.debug("Wrote file.", path=file_path, chars=len(text))
        return file_path
