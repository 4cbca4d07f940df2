import json

import httpx
import pytest

from core.llm_interface import LLMService, LLMServiceError


def _service(handler, **kwargs) -> LLMService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    params = {
        "api_base": "https://chat.test/v1/",
        "api_key": "chat-key",
        "model": "test-model",
        "research_api_base": "https://research.test",
        "research_api_key": "research-key",
        "research_model": "sonar-test",
    }
    params.update(kwargs)
    return LLMService(client=client, **params)


@pytest.mark.asyncio
async def test_complete_posts_chat_payload_and_records_usage():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "choices": [{"message": {"content": "- tighten the opening"}}],
                "usage": {"prompt_tokens": 10, "completion_tokens": 4, "total_tokens": 14},
            },
        )

    service = _service(handler)
    messages = [{"role": "user", "content": "Review this."}]
    out = await service.complete(messages, 700)
    await service.aclose()

    assert out == "- tighten the opening"
    request = seen[0]
    assert str(request.url) == "https://chat.test/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer chat-key"
    body = json.loads(request.content)
    assert body["model"] == "test-model"
    assert body["messages"] == messages
    assert body["max_tokens"] == 700
    assert "temperature" in body
    assert service.request_count == 1
    assert service.usage.total_tokens == 14
    assert service.usage.responses == 1


@pytest.mark.asyncio
async def test_non_success_status_raises_with_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, text="slow down")

    service = _service(handler)
    with pytest.raises(LLMServiceError) as excinfo:
        await service.complete([{"role": "user", "content": "x"}], 10)

    assert excinfo.value.status_code == 429
    assert str(excinfo.value) == "Groq error 429: slow down"


@pytest.mark.asyncio
async def test_missing_key_fails_without_request():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("no request expected")

    service = _service(handler, api_key="")
    with pytest.raises(LLMServiceError, match="Missing Groq API key"):
        await service.complete([{"role": "user", "content": "x"}], 10)
    assert service.request_count == 0


@pytest.mark.asyncio
async def test_missing_choices_yield_empty_text():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    service = _service(handler)
    assert await service.complete([{"role": "user", "content": "x"}], 10) == ""


@pytest.mark.asyncio
async def test_research_appends_citations():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "choices": [{"message": {"content": "Lighthouses used oil lamps."}}],
                "citations": ["https://a.example", "https://b.example"],
            },
        )

    service = _service(handler)
    out = await service.research([{"role": "user", "content": "lamps?"}])

    assert out == (
        "Lighthouses used oil lamps.\n\nSources:\n"
        "- https://a.example\n- https://b.example"
    )
    assert str(seen[0].url) == "https://research.test/chat/completions"
    assert seen[0].headers["Authorization"] == "Bearer research-key"
    assert json.loads(seen[0].content)["model"] == "sonar-test"


@pytest.mark.asyncio
async def test_research_without_citations_returns_answer_only():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": [{"message": {"content": "Yes."}}]})

    service = _service(handler)
    assert await service.research([{"role": "user", "content": "q"}]) == "Yes."
