from pydantic import SecretStr

from streamchat.auth.credential_store import InMemoryCredentialStore
from streamchat.core.logger import get_logger
from streamchat.llm.api.dto import (
    ModelInfo,
    ProviderInfo,
    ProviderListResponse,
    ToggleModelRequest,
)
from streamchat.llm.service.router_service import ProviderRouter, SelectOutcome

logger = get_logger("ProviderHandler")


class ProviderHandler:
    """Handler for provider and model selection endpoints."""

    def __init__(self, router: ProviderRouter, runtime_credentials: InMemoryCredentialStore):
        self.router = router
        # chained ahead of the env store by the engine
        self.runtime_credentials = runtime_credentials

    def provider_info(self, provider_id: str) -> ProviderInfo:
        descriptor = self.router.registry.get(provider_id)
        return ProviderInfo(
            id=descriptor.id,
            display_name=descriptor.display_name,
            kind=descriptor.kind.value,
            requires_credential=descriptor.requires_credential,
            available=self.router.is_available(descriptor.id),
            default_model=self.router.default_model(descriptor.id),
            models=[
                ModelInfo(name=m, enabled=self.router.is_model_enabled(descriptor.id, m))
                for m in self.router.catalog(descriptor.id)
            ],
        )

    async def providers(self) -> ProviderListResponse:
        return ProviderListResponse(
            providers=[self.provider_info(pid) for pid in self.router.registry.ids()],
            selected_provider=self.router.selected_provider_id,
            selected_model=self.router.selected_model,
        )

    async def select_provider(self, provider_id: str) -> SelectOutcome:
        return await self.router.select_provider(provider_id)

    async def select_model(self, model: str) -> None:
        await self.router.select_model(model)

    async def refresh(self, provider_id: str) -> ProviderInfo:
        await self.router.refresh_models(provider_id)
        return self.provider_info(provider_id)

    async def refresh_all(self) -> ProviderListResponse:
        await self.router.refresh_all_models()
        return await self.providers()

    async def set_credential(self, provider_id: str, api_key: SecretStr) -> ProviderInfo:
        """Store (or, when blank, remove) a runtime key and re-discover the catalog."""
        descriptor = self.router.registry.get(provider_id)
        self.runtime_credentials.set_credential(provider_id, api_key.get_secret_value())
        if descriptor.supports_model_listing and self.router.is_available(provider_id):
            await self.router.refresh_models(provider_id)
        return self.provider_info(provider_id)

    async def delete_credential(self, provider_id: str) -> ProviderInfo:
        self.router.registry.get(provider_id)
        self.runtime_credentials.delete_credential(provider_id)
        return self.provider_info(provider_id)

    async def toggle(self, provider_id: str, body: ToggleModelRequest) -> ProviderInfo:
        if body.action == "enable_all":
            await self.router.enable_all_models(provider_id)
        elif body.action == "disable_all":
            await self.router.disable_all_models(provider_id)
        elif body.model:
            enabled = await self.router.toggle_model(provider_id, body.model)
            logger.info(f"{provider_id}/{body.model} enabled={enabled}")
        return self.provider_info(provider_id)
