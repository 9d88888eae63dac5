import pytest

from streamchat.chat.models.chat_model import ChatMessage
from streamchat.chat.service.title_service import TitleSynthesizer, normalize_title
from streamchat.llm.exceptions import NetworkError


def test_normalize_strips_reasoning_quotes_and_newlines():
    assert normalize_title("<think>musing</think>Quicksort Algorithm Overview") == "Quicksort Algorithm Overview"
    assert normalize_title('  "Sorting\nin   Python"  ') == "Sorting in Python"
    assert normalize_title("“Smart” `quotes`") == "Smart quotes"
    assert normalize_title("Title<think>unfinished") == "Title"


def test_normalize_truncates_with_ellipsis():
    title = normalize_title("word " * 40, max_length=80)
    assert len(title) == 80
    assert title.endswith("...")
    assert normalize_title("x" * 80, max_length=80) == "x" * 80


@pytest.fixture
def titles(router, sessions, settings):
    return TitleSynthesizer(router, sessions, settings)


@pytest.mark.asyncio
async def test_first_message_gets_a_title(titles, sessions, adapters):
    ollama = adapters["ollama"]
    ollama.models = ["qwen3:8b"]
    ollama.script(deltas=["<think>musing</think>", "Quicksort ", "Algorithm Overview"])

    session = await sessions.append(None, ChatMessage.user("Explain quicksort"))
    task = titles.maybe_schedule(session)
    assert await task == "Quicksort Algorithm Overview"

    assert session.title == "Quicksort Algorithm Overview"
    assert ollama.calls[0]["model"] == "qwen3:8b"
    assert "Explain quicksort" in ollama.calls[0]["conversation"][0].content


@pytest.mark.asyncio
async def test_fires_once_per_session(titles, sessions, adapters):
    adapters["ollama"].models = ["llama3"]
    adapters["ollama"].script(error=NetworkError("refused"))

    session = await sessions.append(None, ChatMessage.user("hi"))
    task = titles.maybe_schedule(session)
    assert task is not None
    await task
    assert titles.maybe_schedule(session) is None
    assert len(adapters["ollama"].calls) == 1


@pytest.mark.asyncio
async def test_not_scheduled_for_named_or_longer_sessions(titles, sessions):
    named = await sessions.append(None, ChatMessage.user("hi"))
    await sessions.update_title(named.id, "Greeting")
    assert titles.maybe_schedule(named) is None

    sessions.create_empty()
    busy = await sessions.append(None, ChatMessage.user("one"))
    await sessions.append(busy.id, ChatMessage.user("two"))
    assert titles.maybe_schedule(busy) is None


@pytest.mark.asyncio
async def test_failure_keeps_placeholder(titles, sessions, adapters):
    adapters["ollama"].models = ["llama3"]
    adapters["ollama"].script(deltas=["partial"], error=NetworkError("reset"))

    session = await sessions.append(None, ChatMessage.user("hi"))
    assert await titles.maybe_schedule(session) is None
    assert session.title == "Untitled"


@pytest.mark.asyncio
async def test_no_local_model_is_silent(titles, sessions):
    session = await sessions.append(None, ChatMessage.user("hi"))
    assert await titles.maybe_schedule(session) is None
    assert session.title == "Untitled"


@pytest.mark.asyncio
async def test_user_rename_wins_over_late_title(titles, sessions, adapters):
    ollama = adapters["ollama"]
    ollama.models = ["llama3"]
    ollama.script(deltas=["Generated"], hold=True)

    session = await sessions.append(None, ChatMessage.user("hi"))
    task = titles.maybe_schedule(session)
    await ollama.held.wait()
    await sessions.update_title(session.id, "Mine")
    ollama.release.set()

    assert await task is None
    assert session.title == "Mine"


@pytest.mark.asyncio
async def test_configured_title_model_wins(router, sessions, settings, adapters):
    settings.TITLE_MODEL = "phi3"
    adapters["ollama"].script(deltas=["Short"])
    titles = TitleSynthesizer(router, sessions, settings)

    session = await sessions.append(None, ChatMessage.user("hi"))
    assert await titles.maybe_schedule(session) == "Short"
    assert adapters["ollama"].calls[0]["model"] == "phi3"
