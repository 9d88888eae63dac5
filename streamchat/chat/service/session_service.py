from typing import Dict, List, Optional

from streamchat.chat.entity.chat import MessageRole
from streamchat.chat.models.chat_model import ChatMessage, ChatSession
from streamchat.chat.service.service import IChatRepository
from streamchat.core.logger import get_logger
from streamchat.llm.exceptions import MessageNotFoundError, SessionNotFoundError

logger = get_logger(__name__)


class SessionStore:
    """
    Durable, ordered collection of chat sessions.

    Every mutation goes through this class and is persisted before it returns, so
    in-memory state and storage never diverge. A session created with `create_empty`
    stays pending (not listed, not persisted) until its first message is appended.
    """

    def __init__(self, repository: IChatRepository):
        self.repository = repository
        self._sessions: Dict[str, ChatSession] = {}
        self._pending: Optional[ChatSession] = None
        self.current_session_id: Optional[str] = None

    # ----------------------------
    # Persistence
    # ----------------------------
    async def load(self) -> None:
        sessions = await self.repository.load_sessions()
        self._sessions = {s.id: s for s in sessions}
        self._pending = None
        latest = self.list()
        self.current_session_id = latest[0].id if latest else None

    async def save(self) -> None:
        await self.repository.save_sessions(list(self._sessions.values()))

    async def commit(self, session_id: str) -> ChatSession:
        """Mark a session modified after an in-place message mutation and persist it."""
        session = self.get(session_id)
        session.touch()
        await self.save()
        return session

    # ----------------------------
    # Lookup
    # ----------------------------
    def list(self) -> List[ChatSession]:
        """Materialized sessions, most recently modified first."""
        return sorted(self._sessions.values(), key=lambda s: s.last_modified_at, reverse=True)

    def find(self, session_id: Optional[str]) -> Optional[ChatSession]:
        if session_id is None:
            return None
        if self._pending is not None and self._pending.id == session_id:
            return self._pending
        return self._sessions.get(session_id)

    def get(self, session_id: str) -> ChatSession:
        session = self.find(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def is_materialized(self, session_id: str) -> bool:
        return session_id in self._sessions

    @property
    def current_session(self) -> Optional[ChatSession]:
        return self.find(self.current_session_id)

    # ----------------------------
    # Lifecycle
    # ----------------------------
    def create_empty(self) -> ChatSession:
        """Start a new conversation; nothing is stored until the first append."""
        self._pending = ChatSession()
        self.current_session_id = self._pending.id
        logger.debug(f"Pending session {self._pending.id} created")
        return self._pending

    async def append(self, session_id: Optional[str], message: ChatMessage) -> ChatSession:
        """Append a message, materializing the session on its first message."""
        session = self._materialize(session_id)
        session.messages.append(message)
        session.touch()
        await self.save()
        return session

    def _materialize(self, session_id: Optional[str]) -> ChatSession:
        if session_id is not None and session_id in self._sessions:
            return self._sessions[session_id]

        if self._pending is not None and session_id in (None, self._pending.id):
            session = self._pending
            self._pending = None
        elif session_id is None:
            session = ChatSession()
        else:
            raise SessionNotFoundError(session_id)

        self._sessions[session.id] = session
        self.current_session_id = session.id
        logger.info(f"Session {session.id} materialized")
        return session

    async def update_title(self, session_id: str, title: str) -> ChatSession:
        session = self.get(session_id)
        session.title = title
        if self.is_materialized(session_id):
            session.touch()
            await self.save()
        return session

    async def set_model(self, session_id: str, model: str) -> ChatSession:
        session = self.get(session_id)
        session.model = model
        if self.is_materialized(session_id):
            session.touch()
            await self.save()
        return session

    async def delete(self, session_id: str) -> None:
        if self._pending is not None and self._pending.id == session_id:
            self._pending = None
        elif self._sessions.pop(session_id, None) is None:
            raise SessionNotFoundError(session_id)
        else:
            await self.save()
            logger.info(f"Session {session_id} deleted")

        if self.current_session_id == session_id:
            remaining = self.list()
            self.current_session_id = remaining[0].id if remaining else None

    def switch(self, session_id: str) -> ChatSession:
        session = self.get(session_id)
        self.current_session_id = session.id
        return session

    async def truncate_after(self, session_id: str, index: int) -> ChatSession:
        """Drop every message after position `index`."""
        session = self.get(session_id)
        removed = len(session.messages) - (index + 1)
        if removed > 0:
            del session.messages[index + 1:]
            session.touch()
            await self.save()
        return session

    async def select_response(self, session_id: str, message_id: str, index: int) -> ChatMessage:
        """Switch the visible variant; out-of-range indices are ignored."""
        session = self.get(session_id)
        message = session.find_message(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)
        if message.select_response(index):
            session.touch()
            await self.save()
        return message

    # ----------------------------
    # Export
    # ----------------------------
    def export(self, session_id: str) -> str:
        """Markdown transcript of a session's effective content."""
        session = self.get(session_id)
        lines = [
            f"# {session.title}",
            "",
            f"*Model: {session.model or 'unknown'}*",
            f"*Created: {session.created_at.strftime('%Y-%m-%d %H:%M')}*",
            "",
            "---",
            "",
        ]
        for message in session.messages:
            speaker = "You" if message.role == MessageRole.USER else "Assistant"
            lines.append(f"**{speaker}**: {message.content}")
            lines.append("")
        return "\n".join(lines)
