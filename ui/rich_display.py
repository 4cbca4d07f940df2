from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence

from config import settings
from orchestration.models import PipelineSection, Role
from rich.console import Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text


class RichDisplayManager:
    """Live progress panel fed by the pipeline observer."""

    def __init__(
        self,
        roles: Sequence[Role],
        request_counter: object | None = None,
        enabled: bool = settings.ENABLE_RICH_PROGRESS,
    ) -> None:
        self.roles = list(roles)
        # Anything exposing ``request_count`` (normally the LLMService).
        self.request_counter = request_counter
        self.live: Live | None = None
        self.sections_done = 0
        self.cache_hits = 0
        self.status_text_project: Text = Text("Project: N/A")
        self.status_text_current_role: Text = Text("Current Role: Initializing...")
        self.status_text_current_chunk: Text = Text("Current Chunk: N/A")
        self.status_text_sections: Text = Text("Chunks Reviewed: 0 (cached 0)")
        self.status_text_requests: Text = Text("Provider Requests: 0")
        self.status_text_elapsed_time: Text = Text("Elapsed Time: 0s")
        self.run_start_time: float = 0.0
        self._stop_event: asyncio.Event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

        if enabled:
            group = Group(
                self.status_text_project,
                self.status_text_current_role,
                self.status_text_current_chunk,
                self.status_text_sections,
                self.status_text_requests,
                self.status_text_elapsed_time,
            )
            self.live = Live(
                Panel(
                    group,
                    title="Author House Pipeline",
                    border_style="blue",
                    expand=True,
                ),
                refresh_per_second=4,
                transient=False,
                redirect_stdout=False,
                redirect_stderr=False,
            )

    def start(self, project_title: str = "") -> None:
        self.run_start_time = time.time()
        if project_title:
            self.status_text_project.plain = f"Project: {project_title}"
        if self.live:
            self.live.start()
            self._stop_event.clear()
            self._task = asyncio.create_task(self._auto_refresh())

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
        if self.live and self.live.is_started:
            self.update()
            self.live.stop()

    async def _auto_refresh(self) -> None:
        while not self._stop_event.is_set():
            self.update()
            await asyncio.sleep(1)

    def observe(self, section: PipelineSection) -> None:
        """Pipeline observer: record one finished section."""
        role_name = (
            self.roles[section.role_index].name
            if section.role_index < len(self.roles)
            else f"Role {section.role_index + 1}"
        )
        self.status_text_current_role.plain = (
            f"Current Role: {role_name} ({section.role_index + 1}/{len(self.roles)})"
        )
        if section.is_header:
            self.status_text_current_chunk.plain = "Current Chunk: starting"
        else:
            self.sections_done += 1
            if section.cached:
                self.cache_hits += 1
            self.status_text_current_chunk.plain = (
                f"Current Chunk: {section.chunk_index + 1}"
                f"{' (cached)' if section.cached else ''}"
            )
        self.update()

    def update(self) -> None:
        self.status_text_sections.plain = (
            f"Chunks Reviewed: {self.sections_done} (cached {self.cache_hits})"
        )
        requests = getattr(self.request_counter, "request_count", 0)
        self.status_text_requests.plain = f"Provider Requests: {requests}"
        elapsed_seconds = (
            time.time() - self.run_start_time if self.run_start_time else 0.0
        )
        self.status_text_elapsed_time.plain = (
            f"Elapsed Time: {time.strftime('%H:%M:%S', time.gmtime(elapsed_seconds))}"
        )
