# streamchat/chat/repository/chat_repository.py

from datetime import datetime, timezone
from typing import Any, List

from pydantic import ValidationError

from chatkit.storage.kv_store import KeyValueStore
from streamchat.chat.entity.chat import StoredMessage, StoredSession
from streamchat.chat.models.chat_model import ChatMessage, ChatSession
from streamchat.chat.service.service import IChatRepository
from streamchat.core.logger import get_logger

logger = get_logger(__name__)

SESSIONS_KEY = "chat_sessions"


def _parse_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ────────────────────────────────────────────────
# Live model <-> storage DTO
# ────────────────────────────────────────────────

def message_to_stored(message: ChatMessage) -> StoredMessage:
    return StoredMessage(
        id=message.id,
        role=message.role,
        responses=list(message.responses),
        current_response_index=message.current_response_index,
        is_generating=message.is_generating,
        created_at=message.created_at.isoformat(),
    )


def message_from_stored(stored: StoredMessage) -> ChatMessage:
    """Rebuild a live message. A generation never survives a restart."""
    index = stored.current_response_index
    if not stored.responses or not 0 <= index < len(stored.responses):
        index = max(len(stored.responses) - 1, 0)
    return ChatMessage(
        id=stored.id,
        role=stored.role,
        responses=list(stored.responses),
        current_response_index=index,
        is_generating=False,
        created_at=_parse_time(stored.created_at),
    )


def session_to_stored(session: ChatSession) -> StoredSession:
    return StoredSession(
        id=session.id,
        title=session.title,
        messages=[message_to_stored(m) for m in session.messages],
        created_at=session.created_at.isoformat(),
        last_modified_at=session.last_modified_at.isoformat(),
        model=session.model,
    )


def session_from_stored(stored: StoredSession) -> ChatSession:
    return ChatSession(
        id=stored.id,
        title=stored.title,
        messages=[message_from_stored(m) for m in stored.messages],
        created_at=_parse_time(stored.created_at),
        last_modified_at=_parse_time(stored.last_modified_at),
        model=stored.model,
    )


class ChatRepository(IChatRepository):
    """Reads and writes the flattened session list under one key."""

    def __init__(self, store: KeyValueStore):
        self.store = store
        self.logger = logger

    async def load_sessions(self) -> List[ChatSession]:
        raw: Any = await self.store.get(SESSIONS_KEY, [])
        if not isinstance(raw, list):
            self.logger.error(f"Ignoring malformed {SESSIONS_KEY} value of type {type(raw).__name__}")
            return []

        sessions = []
        for item in raw:
            try:
                sessions.append(session_from_stored(StoredSession.model_validate(item)))
            except (ValidationError, ValueError) as e:
                self.logger.error(f"Skipping unreadable stored session: {e}")
        self.logger.info(f"Loaded {len(sessions)} sessions")
        return sessions

    async def save_sessions(self, sessions: List[ChatSession]) -> None:
        payload = [session_to_stored(s).model_dump(mode="json") for s in sessions]
        try:
            await self.store.set(SESSIONS_KEY, payload)
        except Exception as e:
            self.logger.error(f"Failed to save sessions: {e}")
            raise
        self.logger.debug(f"Saved {len(payload)} sessions")
