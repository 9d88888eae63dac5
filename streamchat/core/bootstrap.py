"""
Engine wiring.

Builds the components in dependency order (store, repository, session store,
credentials, router, title synthesizer, controller) with explicit ownership instead of
module-level singletons.
"""

from typing import Optional

import httpx

from chatkit.redis.client import RedisClient
from chatkit.storage.kv_store import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from streamchat.auth.credential_store import (
    ChainedCredentialStore,
    CredentialStore,
    EnvCredentialStore,
    InMemoryCredentialStore,
)
from streamchat.chat.api.handler import ChatHandler
from streamchat.chat.repository.chat_repository import ChatRepository
from streamchat.chat.service.generation_service import GenerationController
from streamchat.chat.service.session_service import SessionStore
from streamchat.chat.service.title_service import TitleSynthesizer
from streamchat.core.config import Settings
from streamchat.core.logger import get_logger
from streamchat.llm.api.handler import ProviderHandler
from streamchat.llm.service.registry import ProviderRegistry
from streamchat.llm.service.router_service import ProviderRouter

logger = get_logger("Bootstrap")


def create_store(settings: Settings) -> KeyValueStore:
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "redis":
        logger.info(f"Using Redis at {settings.REDIS_HOST}:{settings.REDIS_PORT}")
        return RedisClient(
            logger,
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            password=settings.REDIS_PASSWORD,
            prefix=settings.REDIS_PREFIX,
        )
    if backend == "memory":
        logger.warning("Using in-memory storage; nothing survives a restart")
        return MemoryKeyValueStore()
    if backend == "file":
        logger.info(f"Using JSON file storage at {settings.STORAGE_PATH}")
        return JsonFileKeyValueStore(settings.STORAGE_PATH)
    raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")


class Engine:
    """Every component of the conversation engine, owned together."""

    def __init__(
        self,
        settings: Settings,
        store: KeyValueStore,
        credentials: CredentialStore,
        runtime_credentials: InMemoryCredentialStore,
        sessions: SessionStore,
        router: ProviderRouter,
        titles: TitleSynthesizer,
        controller: GenerationController,
    ):
        self.settings = settings
        self.store = store
        self.credentials = credentials
        self.runtime_credentials = runtime_credentials
        self.sessions = sessions
        self.router = router
        self.titles = titles
        self.controller = controller
        self.chat_handler = ChatHandler(controller, sessions)
        self.provider_handler = ProviderHandler(router, runtime_credentials)

    async def aclose(self) -> None:
        await self.controller.aclose()
        await self.titles.aclose()
        await self.store.close()


async def build_engine(
    settings: Settings,
    store: Optional[KeyValueStore] = None,
    runtime_credentials: Optional[InMemoryCredentialStore] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Engine:
    store = store or create_store(settings)
    runtime_credentials = runtime_credentials or InMemoryCredentialStore()
    credentials = ChainedCredentialStore(runtime_credentials, EnvCredentialStore(settings))

    sessions = SessionStore(ChatRepository(store))
    await sessions.load()

    router = ProviderRouter.build(settings, ProviderRegistry.from_settings(settings), credentials, store, http_client)
    await router.load()

    titles = TitleSynthesizer(router, sessions, settings)
    controller = GenerationController(router, sessions, settings, titles)
    logger.info(
        f"Engine ready: {len(sessions.list())} sessions, "
        f"{len(router.available_providers())} providers available"
    )
    return Engine(settings, store, credentials, runtime_credentials, sessions, router, titles, controller)
