import asyncio
from typing import Optional, Set

from streamchat.agents.prompt import TITLE_PROMPT
from streamchat.chat.entity.chat import MessageRole
from streamchat.chat.models.chat_model import ChatSession
from streamchat.chat.service.reasoning import strip_reasoning
from streamchat.chat.service.session_service import SessionStore
from streamchat.core.config import Settings
from streamchat.core.logger import get_logger
from streamchat.llm.entity.provider import ConversationTurn
from streamchat.llm.service.registry import OLLAMA
from streamchat.llm.service.router_service import ProviderRouter

logger = get_logger("TitleSynthesizer")

_QUOTES = "\"'“”‘’`"


def normalize_title(raw: str, max_length: int = 80) -> str:
    title = strip_reasoning(raw)
    title = title.replace("\r", " ").replace("\n", " ")
    for quote in _QUOTES:
        title = title.replace(quote, "")
    title = " ".join(title.split())
    if len(title) > max_length:
        title = title[: max_length - 3] + "..."
    return title


class TitleSynthesizer:
    """
    Names a session from its first user message using the local backend.

    Runs as an independent task next to the main generation and is never cancelled by
    it. Any failure leaves the placeholder title in place.
    """

    def __init__(self, router: ProviderRouter, sessions: SessionStore, settings: Settings):
        self.router = router
        self.sessions = sessions
        self.settings = settings
        self._attempted: Set[str] = set()
        self._tasks: Set[asyncio.Task] = set()

    def maybe_schedule(self, session: ChatSession) -> Optional[asyncio.Task]:
        if session.id in self._attempted:
            return None
        if not session.has_placeholder_title or session.user_message_count != 1:
            return None
        first = next(m for m in session.messages if m.role == MessageRole.USER)
        self._attempted.add(session.id)
        task = asyncio.create_task(self.synthesize(session.id, first.content))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def resolve_model(self) -> Optional[str]:
        if self.settings.TITLE_MODEL:
            return self.settings.TITLE_MODEL
        if self.router.selected_provider_id == OLLAMA and self.router.selected_model:
            return self.router.selected_model
        catalog = self.router.catalog(OLLAMA)
        if not catalog:
            catalog = await self.router.refresh_models(OLLAMA)
        return catalog[0] if catalog else None

    async def generate_title(self, text: str) -> str:
        model = await self.resolve_model()
        if not model:
            raise LookupError("no local model available for title synthesis")

        prompt = TITLE_PROMPT.format(message=text, max_length=self.settings.TITLE_MAX_LENGTH)
        conversation = [ConversationTurn(role="user", content=prompt)]
        raw = ""
        async for delta in self.router.stream(conversation, OLLAMA, model):
            raw += delta
        return normalize_title(raw, self.settings.TITLE_MAX_LENGTH)

    async def synthesize(self, session_id: str, text: str) -> Optional[str]:
        try:
            title = await self.generate_title(text)
            if not title:
                logger.warning(f"Title synthesis returned nothing for session {session_id}")
                return None

            session = self.sessions.find(session_id)
            if session is None or not session.has_placeholder_title:
                return None
            await self.sessions.update_title(session_id, title)
        except Exception as e:
            logger.warning(f"Title synthesis failed for session {session_id}: {e}")
            return None
        logger.info(f"Session {session_id} titled: {title}")
        return title

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
