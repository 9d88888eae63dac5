# streamchat/llm/service/provider/base_provider.py
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

import httpx
from pydantic import SecretStr

from chatkit.util.cancellation import CancellationToken
from streamchat.core.config import Settings
from streamchat.llm.entity.provider import ConversationTurn, ProviderDescriptor


class BaseProvider(ABC):
    """
    Abstract protocol adapter for one backend family.

    `stream` turns a normalized conversation into an async sequence of text deltas, in
    network arrival order. Non-200 statuses are raised as typed ChatErrors before any delta
    is yielded. The cancellation token is checked between consumed chunks.
    """

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.descriptor = descriptor
        self.settings = settings
        self._http_client = http_client

    @property
    def name(self) -> str:
        return self.descriptor.id

    @abstractmethod
    def stream(
        self,
        conversation: List[ConversationTurn],
        model: str,
        credential: Optional[SecretStr] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[str]:
        """Stream text deltas for `conversation` from `model`."""

    async def list_models(self, credential: Optional[SecretStr] = None) -> List[str]:
        """Query the backend's model listing. Only meaningful when the descriptor supports it."""
        raise NotImplementedError(f"{self.name} has no model listing endpoint")

    @asynccontextmanager
    async def _client(self, timeout: Optional[float] = None):
        """Yield the injected client, or a short-lived one closed on exit."""
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=timeout) as client:
            yield client

    @staticmethod
    def _cancelled(cancel_token: Optional[CancellationToken]) -> bool:
        return cancel_token is not None and cancel_token.cancelled

    def __repr__(self):
        return f"<{type(self).__name__} provider={self.name}>"
