from datetime import datetime, timedelta, timezone

import pytest

from streamchat.chat.models.chat_model import ChatMessage
from streamchat.chat.repository.chat_repository import ChatRepository
from streamchat.chat.service.session_service import SessionStore
from streamchat.llm.exceptions import MessageNotFoundError, SessionNotFoundError


@pytest.mark.asyncio
async def test_empty_session_is_not_persisted_until_first_message(sessions, store):
    pending = sessions.create_empty()

    assert sessions.current_session_id == pending.id
    assert sessions.list() == []
    assert store.snapshot() == {}

    session = await sessions.append(pending.id, ChatMessage.user("hello"))
    assert session is pending
    assert session.title == "Untitled"
    assert [s.id for s in sessions.list()] == [pending.id]
    assert len(store.snapshot()["chat_sessions"]) == 1


@pytest.mark.asyncio
async def test_append_without_session_creates_one(sessions):
    session = await sessions.append(None, ChatMessage.user("hi"))
    assert sessions.current_session_id == session.id
    assert sessions.get(session.id).messages[0].content == "hi"


@pytest.mark.asyncio
async def test_append_to_unknown_session_raises(sessions):
    with pytest.raises(SessionNotFoundError):
        await sessions.append("missing", ChatMessage.user("hi"))


@pytest.mark.asyncio
async def test_list_orders_by_last_modified(sessions):
    first = await sessions.append(None, ChatMessage.user("one"))
    sessions.create_empty()
    second = await sessions.append(None, ChatMessage.user("two"))
    first.last_modified_at = second.last_modified_at - timedelta(seconds=5)
    assert [s.id for s in sessions.list()] == [second.id, first.id]

    second.last_modified_at -= timedelta(seconds=10)
    await sessions.append(first.id, ChatMessage.assistant("reply"))
    assert [s.id for s in sessions.list()] == [first.id, second.id]


@pytest.mark.asyncio
async def test_update_title_and_model_persist(sessions, store):
    session = await sessions.append(None, ChatMessage.user("hi"))
    await sessions.update_title(session.id, "Greeting")
    await sessions.set_model(session.id, "gpt-4o")

    stored = store.snapshot()["chat_sessions"][0]
    assert stored["title"] == "Greeting"
    assert stored["model"] == "gpt-4o"


@pytest.mark.asyncio
async def test_delete_current_switches_to_most_recent(sessions, store):
    older = await sessions.append(None, ChatMessage.user("one"))
    sessions.create_empty()
    newer = await sessions.append(None, ChatMessage.user("two"))
    older.last_modified_at -= timedelta(seconds=5)
    sessions.switch(older.id)

    await sessions.delete(older.id)
    assert sessions.current_session_id == newer.id
    assert [s["id"] for s in store.snapshot()["chat_sessions"]] == [newer.id]

    await sessions.delete(newer.id)
    assert sessions.current_session_id is None

    with pytest.raises(SessionNotFoundError):
        await sessions.delete(newer.id)


@pytest.mark.asyncio
async def test_load_picks_most_recent_session(store):
    now = datetime.now(timezone.utc)
    await store.set("chat_sessions", [
        {
            "id": "old", "title": "Old", "messages": [], "model": "",
            "created_at": (now - timedelta(days=2)).isoformat(),
            "last_modified_at": (now - timedelta(days=2)).isoformat(),
        },
        {
            "id": "new", "title": "New", "messages": [], "model": "",
            "created_at": (now - timedelta(days=1)).isoformat(),
            "last_modified_at": now.isoformat(),
        },
    ])
    sessions = SessionStore(ChatRepository(store))
    await sessions.load()

    assert sessions.current_session_id == "new"
    assert [s.id for s in sessions.list()] == ["new", "old"]


@pytest.mark.asyncio
async def test_truncate_after(sessions):
    session = await sessions.append(None, ChatMessage.user("a"))
    for text in ("x", "b", "y"):
        await sessions.append(session.id, ChatMessage.assistant(text))

    await sessions.truncate_after(session.id, 1)
    assert [m.content for m in session.messages] == ["a", "x"]


@pytest.mark.asyncio
async def test_select_response_ignores_out_of_range(sessions):
    session = await sessions.append(None, ChatMessage.user("q"))
    reply = ChatMessage.assistant("v1")
    reply.add_response("v2")
    await sessions.append(session.id, reply)

    await sessions.select_response(session.id, reply.id, 0)
    assert reply.content == "v1"
    await sessions.select_response(session.id, reply.id, 5)
    assert reply.current_response_index == 0

    with pytest.raises(MessageNotFoundError):
        await sessions.select_response(session.id, "nope", 0)


@pytest.mark.asyncio
async def test_export_renders_markdown(sessions):
    session = await sessions.append(None, ChatMessage.user("What is 2+2?"))
    await sessions.append(session.id, ChatMessage.assistant("4"))
    await sessions.update_title(session.id, "Arithmetic")
    await sessions.set_model(session.id, "llama3")

    transcript = sessions.export(session.id)
    assert transcript.startswith("# Arithmetic\n")
    assert "*Model: llama3*" in transcript
    assert "**You**: What is 2+2?" in transcript
    assert "**Assistant**: 4" in transcript
