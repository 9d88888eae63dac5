# streamchat/llm/service/router_service.py
from enum import Enum
from typing import AsyncGenerator, Dict, List, Optional, Tuple

import httpx

from chatkit.storage.kv_store import KeyValueStore
from chatkit.util.cancellation import CancellationToken
from streamchat.auth.credential_store import CredentialStore
from streamchat.core.config import Settings
from streamchat.core.logger import get_logger
from streamchat.llm.entity.provider import ConversationTurn, ProviderDescriptor, ProviderKind
from streamchat.llm.exceptions import NoModelSelectedError, UnknownProviderError
from streamchat.llm.service.model_catalog import sort_models
from streamchat.llm.service.provider.base_provider import BaseProvider
from streamchat.llm.service.provider.gemini import GeminiProvider
from streamchat.llm.service.provider.ollama import OllamaProvider
from streamchat.llm.service.provider.openai_provider import OpenAICompatibleProvider
from streamchat.llm.service.registry import ProviderRegistry

logger = get_logger("ProviderRouter")

SELECTED_PROVIDER_KEY = "selected_provider"
SELECTED_MODEL_KEY = "selected_model"
ENABLED_MODELS_KEY = "enabled_models"

_ADAPTERS = {
    ProviderKind.OPENAI_COMPATIBLE: OpenAICompatibleProvider,
    ProviderKind.GEMINI: GeminiProvider,
    ProviderKind.OLLAMA: OllamaProvider,
}


class SelectOutcome(str, Enum):
    SWITCHED = "switched"
    NEEDS_SETUP = "needs_setup"


class ProviderRouter:
    """
    Central routing layer for LLM requests.

    Holds the selected provider/model pair and a per-provider model catalog, persists
    both selection and enabled-model preferences, and dispatches a normalized
    conversation to the adapter of the selected provider.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        adapters: Dict[str, BaseProvider],
        credentials: CredentialStore,
        store: KeyValueStore,
    ):
        self.registry = registry
        self.adapters = adapters
        self.credentials = credentials
        self.store = store
        self._selected_provider_id: Optional[str] = None
        self._selected_model: Optional[str] = None
        self._catalogs: Dict[str, List[str]] = {}
        self._enabled: Dict[str, Dict[str, bool]] = {}

    @classmethod
    def build(
        cls,
        settings: Settings,
        registry: ProviderRegistry,
        credentials: CredentialStore,
        store: KeyValueStore,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "ProviderRouter":
        """One adapter per registered provider, picked by wire-protocol family."""
        adapters = {
            d.id: _ADAPTERS[d.kind](d, settings, http_client=http_client)
            for d in registry.all()
        }
        return cls(registry, adapters, credentials, store)

    # ---- selection ---------------------------------------------------------

    @property
    def selected_provider_id(self) -> Optional[str]:
        return self._selected_provider_id

    @property
    def selected_model(self) -> Optional[str]:
        return self._selected_model

    async def load(self) -> None:
        """Restore the persisted selection and enabled-model preferences."""
        provider_id = await self.store.get(SELECTED_PROVIDER_KEY)
        model = await self.store.get(SELECTED_MODEL_KEY)
        enabled = await self.store.get(ENABLED_MODELS_KEY, {}) or {}

        self._enabled = {
            pid: {str(m): bool(flag) for m, flag in models.items()}
            for pid, models in enabled.items()
            if isinstance(models, dict)
        }
        if provider_id in self.registry:
            self._selected_provider_id = provider_id
            self._selected_model = model or None
        elif provider_id:
            logger.warning(f"Ignoring persisted selection for unknown provider {provider_id}")
        logger.info(
            f"Router loaded: provider={self._selected_provider_id} model={self._selected_model}"
        )

    async def select_provider(self, provider_id: str) -> SelectOutcome:
        """
        Switch to `provider_id`.

        If the provider needs a credential and none is available the selection is left
        untouched and NEEDS_SETUP is returned. Otherwise the previous model is kept if the
        new catalog contains it, else the provider's default (or first enabled) model is
        selected.
        """
        descriptor = self.registry.get(provider_id)
        if descriptor.requires_credential and not self.credentials.has_credential(provider_id):
            logger.info(f"Provider {provider_id} needs setup; selection unchanged")
            return SelectOutcome.NEEDS_SETUP

        if provider_id not in self._catalogs and descriptor.supports_model_listing:
            await self.refresh_models(provider_id)

        self._selected_provider_id = provider_id
        if self._selected_model not in self.catalog(provider_id):
            self._selected_model = self.default_model(provider_id)
        await self._save_selection()
        logger.info(f"Switched to provider={provider_id} model={self._selected_model}")
        return SelectOutcome.SWITCHED

    async def select_model(self, model: str) -> None:
        if self._selected_provider_id is None:
            raise NoModelSelectedError("No provider selected")
        self._selected_model = model
        await self._save_selection()

    def default_model(self, provider_id: str) -> Optional[str]:
        """Descriptor default when present and enabled, else the first enabled catalog model."""
        descriptor = self.registry.get(provider_id)
        enabled = self.enabled_models(provider_id)
        if descriptor.default_model and descriptor.default_model in enabled:
            return descriptor.default_model
        return enabled[0] if enabled else None

    def resolve(self) -> Tuple[str, str]:
        if not self._selected_provider_id or not self._selected_model:
            raise NoModelSelectedError()
        return self._selected_provider_id, self._selected_model

    async def _save_selection(self) -> None:
        await self.store.set(SELECTED_PROVIDER_KEY, self._selected_provider_id)
        await self.store.set(SELECTED_MODEL_KEY, self._selected_model)

    # ---- providers ----------------------------------------------------------

    def adapter(self, provider_id: str) -> BaseProvider:
        try:
            return self.adapters[provider_id]
        except KeyError:
            raise UnknownProviderError(provider_id) from None

    def is_available(self, provider_id: str) -> bool:
        descriptor = self.registry.get(provider_id)
        return not descriptor.requires_credential or self.credentials.has_credential(provider_id)

    def available_providers(self) -> List[ProviderDescriptor]:
        return [d for d in self.registry.all() if self.is_available(d.id)]

    # ---- model catalog ------------------------------------------------------

    def catalog(self, provider_id: str) -> List[str]:
        """Cached catalog, or the sorted fallback candidates if nothing was fetched yet."""
        if provider_id in self._catalogs:
            return list(self._catalogs[provider_id])
        descriptor = self.registry.get(provider_id)
        return sort_models(provider_id, descriptor.candidate_models)

    async def refresh_models(self, provider_id: str) -> List[str]:
        """
        Re-query the provider's model listing. Never raises for backend failures: the
        descriptor's candidate list is cached instead.
        """
        descriptor = self.registry.get(provider_id)
        models: List[str] = []
        if descriptor.supports_model_listing:
            credential = self.credentials.get_credential(provider_id) if descriptor.requires_credential else None
            try:
                models = await self.adapter(provider_id).list_models(credential)
            except Exception as e:
                logger.warning(f"Model discovery failed for {provider_id}, using fallback list: {e}")
                models = []
        if not models:
            models = list(descriptor.candidate_models)

        self._catalogs[provider_id] = sort_models(provider_id, models)
        logger.info(f"Catalog for {provider_id}: {len(self._catalogs[provider_id])} models")
        return list(self._catalogs[provider_id])

    async def refresh_all_models(self) -> Dict[str, List[str]]:
        return {d.id: await self.refresh_models(d.id) for d in self.available_providers()}

    # ---- enabled-model preferences -----------------------------------------

    def is_model_enabled(self, provider_id: str, model: str) -> bool:
        return self._enabled.get(provider_id, {}).get(model, True)

    def enabled_models(self, provider_id: str) -> List[str]:
        return [m for m in self.catalog(provider_id) if self.is_model_enabled(provider_id, m)]

    async def toggle_model(self, provider_id: str, model: str) -> bool:
        self.registry.get(provider_id)
        enabled = not self.is_model_enabled(provider_id, model)
        self._enabled.setdefault(provider_id, {})[model] = enabled
        await self.store.set(ENABLED_MODELS_KEY, self._enabled)
        return enabled

    async def enable_all_models(self, provider_id: str) -> None:
        await self._set_all(provider_id, True)

    async def disable_all_models(self, provider_id: str) -> None:
        await self._set_all(provider_id, False)

    async def _set_all(self, provider_id: str, enabled: bool) -> None:
        self.registry.get(provider_id)
        self._enabled[provider_id] = {m: enabled for m in self.catalog(provider_id)}
        await self.store.set(ENABLED_MODELS_KEY, self._enabled)

    # ---- dispatch -----------------------------------------------------------

    async def stream(
        self,
        conversation: List[ConversationTurn],
        provider_id: str,
        model: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncGenerator[str, None]:
        """Hand `conversation` to the provider's adapter and relay its deltas unchanged."""
        descriptor = self.registry.get(provider_id)
        credential = self.credentials.get_credential(provider_id) if descriptor.requires_credential else None
        async for delta in self.adapter(provider_id).stream(conversation, model, credential, cancel_token):
            yield delta

    def __repr__(self):
        return f"<ProviderRouter provider={self._selected_provider_id} model={self._selected_model}>"
