import asyncio
from typing import List, Optional

import pytest

from chatkit.storage.kv_store import MemoryKeyValueStore
from streamchat.auth.credential_store import InMemoryCredentialStore
from streamchat.chat.repository.chat_repository import ChatRepository
from streamchat.chat.service.generation_service import GenerationController
from streamchat.chat.service.session_service import SessionStore
from streamchat.core.config import Settings
from streamchat.llm.service.provider.base_provider import BaseProvider
from streamchat.llm.service.registry import ProviderRegistry
from streamchat.llm.service.router_service import ProviderRouter


class ScriptedProvider(BaseProvider):
    """Adapter double that replays canned deltas and records every call."""

    def __init__(self, descriptor, settings, deltas=(), error=None, hold=False, models=None, list_error=None):
        super().__init__(descriptor, settings)
        self.deltas: List[str] = list(deltas)
        self.error: Optional[Exception] = error
        self.hold = hold
        self.models = models
        self.list_error = list_error
        self.calls = []
        self.held = asyncio.Event()
        self.release = asyncio.Event()

    async def stream(self, conversation, model, credential=None, cancel_token=None):
        self.calls.append({"conversation": list(conversation), "model": model, "credential": credential})
        for delta in self.deltas:
            if self._cancelled(cancel_token):
                return
            yield delta
        if self.hold:
            self.held.set()
            await self.release.wait()
        if self.error is not None:
            raise self.error

    async def list_models(self, credential=None):
        if self.list_error is not None:
            raise self.list_error
        if self.models is None:
            return await super().list_models(credential)
        return list(self.models)

    def script(self, deltas=(), error=None, hold=False):
        self.deltas = list(deltas)
        self.error = error
        self.hold = hold
        self.held = asyncio.Event()
        self.release = asyncio.Event()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        OPENAI_API_KEY=None,
        GROQ_API_KEY=None,
        GEMINI_API_KEY=None,
        STORAGE_BACKEND="memory",
        TITLE_MODEL=None,
    )


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def credentials():
    return InMemoryCredentialStore({"openai": "sk-test"})


@pytest.fixture
def registry(settings):
    return ProviderRegistry.from_settings(settings)


@pytest.fixture
def adapters(registry, settings):
    return {d.id: ScriptedProvider(d, settings) for d in registry.all()}


@pytest.fixture
def router(registry, adapters, credentials, store):
    return ProviderRouter(registry, adapters, credentials, store)


@pytest.fixture
def sessions(store):
    return SessionStore(ChatRepository(store))


@pytest.fixture
def controller(router, sessions, settings):
    return GenerationController(router, sessions, settings)
