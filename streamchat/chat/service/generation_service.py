import asyncio
import inspect
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from chatkit.util.cancellation import CancellationToken
from streamchat.agents.prompt import SELECTION_DISPLAY_TEMPLATE
from streamchat.chat.entity.chat import MessageRole
from streamchat.chat.models.chat_model import ChatMessage, ChatSession, GenerationRequest
from streamchat.chat.service.context import edit_context, regenerate_context, send_context
from streamchat.chat.service.reasoning import display_text
from streamchat.chat.service.session_service import SessionStore
from streamchat.chat.service.title_service import TitleSynthesizer
from streamchat.core.config import Settings
from streamchat.core.logger import get_logger
from streamchat.llm.exceptions import (
    ChatError,
    InvalidMessageError,
    MessageNotFoundError,
    NetworkError,
    NoModelSelectedError,
)
from streamchat.llm.service.router_service import ProviderRouter

logger = get_logger("GenerationController")


class GenerationState(str, Enum):
    DISPATCHING = "dispatching"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERRORED = "errored"


class GenerationEvent(BaseModel):
    """Pushed to listeners on every state transition and every delta."""
    model_config = ConfigDict(frozen=True)

    session_id: str
    message_id: str
    state: GenerationState
    # display form: a dangling reasoning block is shown closed
    text: str = ""
    error: Optional[str] = None
    # taxonomy tag of the failure, e.g. "rate_limited"
    error_kind: Optional[str] = None
    needs_attention: bool = False


Listener = Callable[[GenerationEvent], Any]


class GenerationController:
    """
    Owns at most one in-flight generation per session.

    Idle -> Dispatching -> Streaming -> Completed | Cancelled | Errored -> Idle

    Starting a generation for a session that already has one running cancels the old
    one first. Partial output is never discarded: a cancelled or failed stream keeps
    whatever text had arrived.
    """

    def __init__(
        self,
        router: ProviderRouter,
        sessions: SessionStore,
        settings: Settings,
        titles: Optional[TitleSynthesizer] = None,
    ):
        self.router = router
        self.sessions = sessions
        self.settings = settings
        self.titles = titles
        self.last_error: Optional[ChatError] = None
        self._tasks: Dict[str, asyncio.Task] = {}
        self._tokens: Dict[str, CancellationToken] = {}
        self._requests: Dict[str, GenerationRequest] = {}
        self._listeners: List[Listener] = []

    # ----------------------------
    # Observers
    # ----------------------------
    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _emit(self, event: GenerationEvent) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Generation listener failed on {event.state.value}")

    @property
    def needs_attention(self) -> bool:
        """Last failure was a credential or rate-limit problem the user must act on."""
        return self.last_error is not None and self.last_error.needs_attention

    def is_generating(self, session_id: str) -> bool:
        task = self._tasks.get(session_id)
        return task is not None and not task.done()

    # ----------------------------
    # Inbound signals
    # ----------------------------
    async def send_message(
        self,
        text: str,
        selected_text: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Optional[ChatMessage]:
        """
        Append the user turn and start streaming the reply.

        Returns the assistant placeholder being streamed into, or None when nothing was
        dispatched (blank input, no model selected).
        """
        if not text or not text.strip():
            return None

        session_id = session_id or self.sessions.current_session_id
        if session_id is not None:
            await self._cancel_running(session_id)

        content = text
        if selected_text:
            content = SELECTION_DISPLAY_TEMPLATE.format(selection=selected_text, question=text)
        user_message = ChatMessage.user(content)
        session = await self.sessions.append(session_id, user_message)
        if self.titles is not None:
            self.titles.maybe_schedule(session)

        resolved = await self._resolve_or_report(session)
        if resolved is None:
            return None
        provider_id, model = resolved
        if not session.model:
            await self.sessions.set_model(session.id, model)

        conversation = send_context(
            session.messages,
            user_message,
            text,
            self.settings.CONTEXT_WINDOW_MESSAGES,
            selected_text,
        )
        placeholder = ChatMessage.placeholder()
        await self.sessions.append(session.id, placeholder)

        self._start(GenerationRequest(
            session_id=session.id,
            target_message_id=placeholder.id,
            conversation=conversation,
            provider_id=provider_id,
            model=model,
        ))
        return placeholder

    async def regenerate(self, session_id: str, message_id: str) -> Optional[ChatMessage]:
        """Stream a new variant for an assistant message; earlier variants are kept."""
        session = self.sessions.get(session_id)
        index = session.index_of(message_id)
        if index is None:
            raise MessageNotFoundError(message_id)
        message = session.messages[index]
        if message.role != MessageRole.ASSISTANT:
            raise InvalidMessageError(message_id, "only assistant messages can be regenerated")

        await self._cancel_running(session_id)
        resolved = await self._resolve_or_report(session)
        if resolved is None:
            return None
        provider_id, model = resolved

        message.is_generating = True
        message.draft = ""
        await self.sessions.commit(session_id)

        self._start(GenerationRequest(
            session_id=session_id,
            target_message_id=message_id,
            conversation=regenerate_context(session.messages, index),
            provider_id=provider_id,
            model=model,
            regenerate=True,
        ))
        return message

    async def edit_and_resend(self, session_id: str, message_id: str, text: str) -> Optional[ChatMessage]:
        """
        Replace a user turn's text, drop everything after the most recent user turn and
        re-dispatch with user turns only as context.
        """
        if not text or not text.strip():
            return None
        session = self.sessions.get(session_id)
        message = session.find_message(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)
        if message.role != MessageRole.USER:
            raise InvalidMessageError(message_id, "only user messages can be edited")

        await self._cancel_running(session_id)
        message.responses = [text]
        message.current_response_index = 0

        last_user = max(i for i, m in enumerate(session.messages) if m.role == MessageRole.USER)
        await self.sessions.truncate_after(session_id, last_user)
        await self.sessions.commit(session_id)

        resolved = await self._resolve_or_report(session)
        if resolved is None:
            return None
        provider_id, model = resolved

        conversation = edit_context(session.messages)
        placeholder = ChatMessage.placeholder()
        await self.sessions.append(session_id, placeholder)

        self._start(GenerationRequest(
            session_id=session_id,
            target_message_id=placeholder.id,
            conversation=conversation,
            provider_id=provider_id,
            model=model,
        ))
        return placeholder

    async def stop_generation(self, session_id: Optional[str] = None) -> bool:
        """Cancel the session's running generation, keeping its partial output."""
        session_id = session_id or self.sessions.current_session_id
        if session_id is None or not self.is_generating(session_id):
            return False
        await self._cancel_running(session_id)
        logger.info(f"Generation stopped for session {session_id}")
        return True

    async def wait(self, session_id: str) -> None:
        """Block until the session's running generation (if any) has finalized."""
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def aclose(self) -> None:
        for session_id in list(self._tasks):
            await self._cancel_running(session_id)

    # ----------------------------
    # Task management
    # ----------------------------
    def _start(self, request: GenerationRequest) -> asyncio.Task:
        token = CancellationToken()
        task = asyncio.create_task(self._run(request, token))
        self._tasks[request.session_id] = task
        self._tokens[request.session_id] = token
        self._requests[request.session_id] = request
        task.add_done_callback(lambda t, sid=request.session_id: self._forget(sid, t))
        return task

    def _forget(self, session_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(session_id) is task:
            del self._tasks[session_id]
            self._tokens.pop(session_id, None)
            self._requests.pop(session_id, None)

    async def _cancel_running(self, session_id: str) -> None:
        task = self._tasks.get(session_id)
        if task is None or task.done():
            return
        request = self._requests.get(session_id)
        token = self._tokens.get(session_id)
        if token is not None:
            token.cancel()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        if request is not None:
            await self._settle(request)

    async def _settle(self, request: GenerationRequest) -> None:
        """Finalize a target left generating by a task cancelled before it ever ran."""
        session = self.sessions.find(request.session_id)
        message = session.find_message(request.target_message_id) if session else None
        if message is None or not message.is_generating:
            return
        partial = (message.draft or "") if request.regenerate else message.content
        await self._finalize(request, message, partial, GenerationState.CANCELLED)

    async def _resolve_or_report(self, session: ChatSession):
        """(provider_id, model) for a dispatch, or None after appending an error turn."""
        try:
            return self.router.resolve()
        except NoModelSelectedError as e:
            self.last_error = e
            error_message = ChatMessage.assistant(e.user_message)
            await self.sessions.append(session.id, error_message)
            await self._emit(GenerationEvent(
                session_id=session.id,
                message_id=error_message.id,
                state=GenerationState.ERRORED,
                text=e.user_message,
                error=e.user_message,
                error_kind=e.kind,
                needs_attention=e.needs_attention,
            ))
            return None

    # ----------------------------
    # Generation
    # ----------------------------
    async def _run(self, request: GenerationRequest, token: CancellationToken) -> None:
        session_id = request.session_id
        session = self.sessions.find(session_id)
        message = session.find_message(request.target_message_id) if session else None
        if message is None:
            return

        accumulated = ""
        logger.debug(f"{session_id}: dispatching to {request.provider_id}/{request.model}")
        await self._emit(GenerationEvent(
            session_id=session_id, message_id=message.id, state=GenerationState.DISPATCHING,
        ))
        try:
            async for delta in self.router.stream(
                request.conversation, request.provider_id, request.model, token
            ):
                accumulated += delta
                self._apply(message, accumulated, request.regenerate)
                await self._emit(GenerationEvent(
                    session_id=session_id,
                    message_id=message.id,
                    state=GenerationState.STREAMING,
                    text=display_text(accumulated),
                ))
                if token.cancelled:
                    break
        except asyncio.CancelledError:
            await self._finalize(request, message, accumulated, GenerationState.CANCELLED)
            raise
        except ChatError as e:
            await self._fail(request, message, accumulated, e)
            return
        except Exception as e:
            await self._fail(request, message, accumulated, NetworkError(str(e)))
            return

        state = GenerationState.CANCELLED if token.cancelled else GenerationState.COMPLETED
        if state == GenerationState.COMPLETED:
            self.last_error = None
        await self._finalize(request, message, accumulated, state)

    @staticmethod
    def _apply(message: ChatMessage, accumulated: str, regenerate: bool) -> None:
        if regenerate:
            message.draft = accumulated
        else:
            message.responses = [accumulated]
            message.current_response_index = 0

    async def _finalize(
        self,
        request: GenerationRequest,
        message: ChatMessage,
        accumulated: str,
        state: GenerationState,
        error: Optional[ChatError] = None,
    ) -> None:
        if request.regenerate:
            # an interrupted regeneration only leaves a variant if something arrived
            if state == GenerationState.COMPLETED or accumulated:
                message.add_response(accumulated)
            message.draft = None
        else:
            message.responses = [accumulated]
            message.current_response_index = 0
        message.is_generating = False

        await self._persist(request.session_id)
        logger.debug(f"{request.session_id}: generation {state.value} ({len(accumulated)} chars)")
        await self._emit(GenerationEvent(
            session_id=request.session_id,
            message_id=message.id,
            state=state,
            text=display_text(message.content),
            error=error.user_message if error else None,
            error_kind=error.kind if error else None,
            needs_attention=error.needs_attention if error else False,
        ))

    async def _fail(
        self,
        request: GenerationRequest,
        message: ChatMessage,
        accumulated: str,
        error: ChatError,
    ) -> None:
        logger.error(f"Generation failed for session {request.session_id}: {error}")
        self.last_error = error
        await self._finalize(request, message, accumulated, GenerationState.ERRORED, error)

        if not self.sessions.is_materialized(request.session_id):
            return
        error_message = ChatMessage.assistant(error.user_message)
        await self.sessions.append(request.session_id, error_message)
        await self._emit(GenerationEvent(
            session_id=request.session_id,
            message_id=error_message.id,
            state=GenerationState.ERRORED,
            text=error.user_message,
            error=error.user_message,
            error_kind=error.kind,
            needs_attention=error.needs_attention,
        ))

    async def _persist(self, session_id: str) -> None:
        if self.sessions.is_materialized(session_id):
            await self.sessions.commit(session_id)
