# streamchat/auth/credential_store.py
"""
Credential collaborator.

The engine never persists secrets itself; it asks a CredentialStore for a provider's
bearer credential at dispatch time and unwraps it only at the adapter boundary.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from pydantic import SecretStr

from streamchat.core.config import Settings
from streamchat.core.logger import get_logger

logger = get_logger("CredentialStore")


class CredentialStore(ABC):

    @abstractmethod
    def get_credential(self, provider_id: str) -> Optional[SecretStr]:
        ...

    def has_credential(self, provider_id: str) -> bool:
        return self.get_credential(provider_id) is not None


class EnvCredentialStore(CredentialStore):
    """Reads `<PROVIDER>_API_KEY` settings."""

    _FIELDS = {
        "openai": "OPENAI_API_KEY",
        "groq": "GROQ_API_KEY",
        "gemini": "GEMINI_API_KEY",
    }

    def __init__(self, settings: Settings):
        self.settings = settings

    def get_credential(self, provider_id: str) -> Optional[SecretStr]:
        field = self._FIELDS.get(provider_id)
        if field is None:
            return None
        value = getattr(self.settings, field, None)
        if not value or not value.strip():
            return None
        return SecretStr(value.strip())


class InMemoryCredentialStore(CredentialStore):
    """Credentials handed over by the shell at runtime through `PUT /providers/{id}/credential`."""

    def __init__(self, credentials: Optional[Dict[str, str]] = None):
        self._secrets: Dict[str, SecretStr] = {}
        for provider_id, value in (credentials or {}).items():
            self.set_credential(provider_id, value)

    def get_credential(self, provider_id: str) -> Optional[SecretStr]:
        return self._secrets.get(provider_id)

    def set_credential(self, provider_id: str, value: str) -> None:
        if not value or not value.strip():
            self.delete_credential(provider_id)
            return
        self._secrets[provider_id] = SecretStr(value.strip())
        logger.info(f"Credential stored for provider={provider_id}")

    def delete_credential(self, provider_id: str) -> bool:
        removed = self._secrets.pop(provider_id, None) is not None
        if removed:
            logger.info(f"Credential removed for provider={provider_id}")
        return removed


class ChainedCredentialStore(CredentialStore):
    """First store that has a credential wins (runtime-provided before env)."""

    def __init__(self, *stores: CredentialStore):
        self._stores = stores

    def get_credential(self, provider_id: str) -> Optional[SecretStr]:
        for store in self._stores:
            credential = store.get_credential(provider_id)
            if credential is not None:
                return credential
        return None
