# core/llm_interface.py
"""
Handles all direct interactions with the chat-completion providers:
the OpenAI-compatible editing provider (Groq by default) and the
Perplexity-style research provider.

Calls here are single attempts. Pacing and retries are applied by the
caller through ``core.rate_limiter.RateLimiter`` and ``core.retry``.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog
from config import settings

from core.usage import TokenUsage

logger = structlog.get_logger(__name__)

Message = dict[str, str]


class CompletionProvider(Protocol):
    async def complete(self, messages: list[Message], max_tokens: int) -> str: ...

    async def research(self, messages: list[Message]) -> str: ...


class LLMServiceError(Exception):
    """A provider answered with a non-success status or could not be called."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class LLMService:
    """Utility class for interacting with the chat-completion endpoints."""

    def __init__(
        self,
        timeout: float = settings.HTTPX_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        api_base: str = settings.OPENAI_API_BASE,
        api_key: str = settings.OPENAI_API_KEY,
        model: str = settings.MAIN_MODEL,
        research_api_base: str = settings.RESEARCH_API_BASE,
        research_api_key: str = settings.RESEARCH_API_KEY,
        research_model: str = settings.RESEARCH_MODEL,
    ) -> None:
        # Use a single async client for all requests to reuse connections
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.research_api_base = research_api_base.rstrip("/")
        self.research_api_key = research_api_key
        self.research_model = research_model
        self.request_count = 0
        self.usage = TokenUsage()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _log_llm_usage(self, model_name: str, usage_data: Any) -> None:
        """Helper to record and log token usage if available in the response."""
        if usage_data and isinstance(usage_data, dict):
            self.usage.add(usage_data)
            logger.info(
                "LLM usage.",
                model=model_name,
                prompt_tokens=usage_data.get("prompt_tokens", "N/A"),
                completion_tokens=usage_data.get("completion_tokens", "N/A"),
                total_tokens=usage_data.get("total_tokens", "N/A"),
            )
        else:
            logger.debug("LLM response missing usage information.", model=model_name)

    async def _post_chat(
        self,
        provider: str,
        api_base: str,
        api_key: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        if not api_key:
            raise LLMServiceError(f"Missing {provider} API key.")

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self.request_count += 1
        logger.debug(
            "Calling LLM.",
            provider=provider,
            model=payload.get("model"),
            messages=len(payload.get("messages", [])),
            max_tokens=payload.get("max_tokens"),
        )
        response = await self._client.post(
            f"{api_base}/chat/completions", json=payload, headers=headers
        )
        if not response.is_success:
            raise LLMServiceError(
                f"{provider} error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        data = response.json()
        self._log_llm_usage(payload.get("model", ""), data.get("usage"))
        return data

    @staticmethod
    def _message_content(data: dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if not choices:
            logger.error("Invalid response structure - missing choices.", data=data)
            return ""
        message = choices[0].get("message") or {}
        return message.get("content") or ""

    async def complete(self, messages: list[Message], max_tokens: int) -> str:
        """Send ``messages`` to the editing provider and return the reply text."""
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": settings.TEMPERATURE,
        }
        data = await self._post_chat("Groq", self.api_base, self.api_key, payload)
        return self._message_content(data)

    async def research(self, messages: list[Message]) -> str:
        """Ask the research provider; cited sources are appended to the answer."""
        payload: dict[str, Any] = {"model": self.research_model, "messages": messages}
        data = await self._post_chat(
            "Perplexity", self.research_api_base, self.research_api_key, payload
        )
        content = self._message_content(data)
        citations = data.get("citations") or []
        if not citations:
            return content
        sources = "\n".join(f"- {c}" for c in citations)
        return f"{content}\n\nSources:\n{sources}"
