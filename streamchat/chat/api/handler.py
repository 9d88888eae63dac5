import asyncio
from typing import AsyncGenerator, List, Optional

from streamchat.chat.api.dto import (
    EditMessageRequest,
    MessageResponse,
    RegenerateRequest,
    SelectResponseRequest,
    SendMessageRequest,
    SessionResponse,
    SessionSummary,
)
from streamchat.chat.models.chat_model import ChatMessage, ChatSession
from streamchat.chat.service.generation_service import GenerationController, GenerationEvent, GenerationState
from streamchat.chat.service.reasoning import display_text
from streamchat.chat.service.session_service import SessionStore
from streamchat.core.logger import get_logger
from streamchat.llm.exceptions import SessionNotFoundError

logger = get_logger("ChatHandler")

_TERMINAL = {GenerationState.COMPLETED, GenerationState.CANCELLED, GenerationState.ERRORED}


def _message_response(message: ChatMessage) -> MessageResponse:
    content = message.draft if message.draft is not None else message.content
    return MessageResponse(
        id=message.id,
        role=message.role.value,
        content=display_text(content),
        responses=list(message.responses),
        current_response_index=message.current_response_index,
        is_generating=message.is_generating,
        created_at=message.created_at.isoformat(),
    )


def _summary(session: ChatSession, current_id: Optional[str]) -> SessionSummary:
    return SessionSummary(
        id=session.id,
        title=session.title,
        model=session.model,
        created_at=session.created_at.isoformat(),
        last_modified_at=session.last_modified_at.isoformat(),
        message_count=len(session.messages),
        is_current=session.id == current_id,
    )


def _sse(event: GenerationEvent) -> str:
    return f"event: {event.state.value}\ndata: {event.model_dump_json()}\n\n"


class ChatHandler:
    """Inbound signals from the shell, translated onto the session store and controller."""

    def __init__(self, controller: GenerationController, sessions: SessionStore):
        self.controller = controller
        self.sessions = sessions

    def _session_id(self, session_id: Optional[str]) -> str:
        resolved = session_id or self.sessions.current_session_id
        if resolved is None:
            raise SessionNotFoundError("current")
        return resolved

    def session_response(self, session: ChatSession) -> SessionResponse:
        summary = _summary(session, self.sessions.current_session_id)
        return SessionResponse(
            **summary.model_dump(),
            messages=[_message_response(m) for m in session.messages],
        )

    async def list_sessions(self) -> List[SessionSummary]:
        current = self.sessions.current_session_id
        return [_summary(s, current) for s in self.sessions.list()]

    async def get_session(self, session_id: str) -> SessionResponse:
        return self.session_response(self.sessions.get(session_id))

    async def new_session(self) -> SessionResponse:
        return self.session_response(self.sessions.create_empty())

    async def switch_session(self, session_id: str) -> SessionResponse:
        return self.session_response(self.sessions.switch(session_id))

    async def delete_session(self, session_id: str) -> None:
        self.sessions.get(session_id)
        await self.controller.stop_generation(session_id)
        await self.sessions.delete(session_id)

    async def send(self, body: SendMessageRequest) -> Optional[MessageResponse]:
        placeholder = await self.controller.send_message(body.text, body.selected_text, body.session_id)
        if placeholder is None:
            return None
        if body.wait:
            await self.controller.wait(self._session_id(body.session_id))
        return _message_response(placeholder)

    async def send_stream(self, body: SendMessageRequest) -> AsyncGenerator[str, None]:
        """
        Send a message, then return a generator relaying the session's generation
        events as SSE. Dispatch errors are raised here, before any response is started.
        """
        queue: asyncio.Queue = asyncio.Queue()
        self.controller.add_listener(queue.put_nowait)
        try:
            placeholder = await self.controller.send_message(body.text, body.selected_text, body.session_id)
        except BaseException:
            self.controller.remove_listener(queue.put_nowait)
            raise
        session_id = body.session_id or self.sessions.current_session_id
        return self._relay(queue, placeholder, session_id)

    async def _relay(
        self,
        queue: asyncio.Queue,
        placeholder: Optional[ChatMessage],
        session_id: Optional[str],
    ) -> AsyncGenerator[str, None]:
        try:
            while placeholder is not None:
                event = await queue.get()
                if event.session_id != session_id:
                    continue
                yield _sse(event)
                if event.message_id == placeholder.id and event.state in _TERMINAL:
                    break

            if session_id is not None:
                await self.controller.wait(session_id)
            while not queue.empty():
                event = queue.get_nowait()
                if event.session_id == session_id:
                    yield _sse(event)
            yield "event: complete\ndata: {}\n\n"
        finally:
            self.controller.remove_listener(queue.put_nowait)

    async def stop(self, session_id: Optional[str]) -> bool:
        return await self.controller.stop_generation(session_id)

    async def regenerate(self, body: RegenerateRequest) -> Optional[MessageResponse]:
        session_id = self._session_id(body.session_id)
        message = await self.controller.regenerate(session_id, body.message_id)
        if message is None:
            return None
        if body.wait:
            await self.controller.wait(session_id)
        return _message_response(message)

    async def edit(self, body: EditMessageRequest) -> Optional[MessageResponse]:
        session_id = self._session_id(body.session_id)
        placeholder = await self.controller.edit_and_resend(session_id, body.message_id, body.text)
        if placeholder is None:
            return None
        if body.wait:
            await self.controller.wait(session_id)
        return _message_response(placeholder)

    async def select_response(self, body: SelectResponseRequest) -> MessageResponse:
        session_id = self._session_id(body.session_id)
        message = await self.sessions.select_response(session_id, body.message_id, body.index)
        return _message_response(message)

    async def export(self, session_id: str) -> str:
        return self.sessions.export(session_id)
