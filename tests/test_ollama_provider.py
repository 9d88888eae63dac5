import json

import httpx
import pytest

from streamchat.llm.entity.provider import ConversationTurn
from streamchat.llm.exceptions import ApiError, NetworkError
from streamchat.llm.service.provider.ollama import OllamaProvider

CONVERSATION = [ConversationTurn(role="user", content="hi")]


def _line(content, done=False):
    return json.dumps({"model": "llama3", "message": {"role": "assistant", "content": content}, "done": done})


def _provider(registry, settings, handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OllamaProvider(registry.get("ollama"), settings, http_client=client)


@pytest.mark.asyncio
async def test_streams_ndjson_until_done(registry, settings):
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        body = "\n".join([_line("Hel"), "", _line("lo"), _line("", done=True), _line("ignored")])
        return httpx.Response(200, content=body.encode())

    provider = _provider(registry, settings, handler)
    assert [d async for d in provider.stream(CONVERSATION, "llama3")] == ["Hel", "lo"]

    assert seen["url"] == "http://localhost:11434/api/chat"
    assert seen["body"] == {
        "model": "llama3",
        "messages": [{"role": "user", "content": "hi"}],
        "stream": True,
        "options": {"temperature": settings.TEMPERATURE},
    }


@pytest.mark.asyncio
async def test_error_line_raises(registry, settings):
    def handler(request: httpx.Request):
        body = "\n".join([_line("partial"), json.dumps({"error": "model crashed"})])
        return httpx.Response(200, content=body.encode())

    provider = _provider(registry, settings, handler)
    received = []
    with pytest.raises(ApiError):
        async for delta in provider.stream(CONVERSATION, "llama3"):
            received.append(delta)
    assert received == ["partial"]


@pytest.mark.asyncio
async def test_missing_model_status(registry, settings):
    provider = _provider(
        registry, settings, lambda request: httpx.Response(404, json={"error": "model 'x' not found"})
    )
    with pytest.raises(ApiError) as exc_info:
        async for _ in provider.stream(CONVERSATION, "x"):
            pass
    assert exc_info.value.status == 404


@pytest.mark.asyncio
async def test_server_down_is_network_error(registry, settings):
    def handler(request: httpx.Request):
        raise httpx.ConnectError("connection refused", request=request)

    provider = _provider(registry, settings, handler)
    with pytest.raises(NetworkError):
        async for _ in provider.stream(CONVERSATION, "llama3"):
            pass
    with pytest.raises(NetworkError):
        await provider.list_models()


@pytest.mark.asyncio
async def test_list_models_newest_first(registry, settings):
    def handler(request: httpx.Request):
        assert request.url.path == "/api/tags"
        return httpx.Response(200, json={"models": [
            {"name": "llama3:latest", "modified_at": "2024-04-01T10:00:00Z"},
            {"name": "qwen3:8b", "modified_at": "2024-06-01T10:00:00Z"},
            {"name": "mistral:7b", "modified_at": "2024-05-01T10:00:00Z"},
        ]})

    provider = _provider(registry, settings, handler)
    assert await provider.list_models() == ["qwen3:8b", "mistral:7b", "llama3:latest"]
