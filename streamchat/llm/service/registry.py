from typing import Dict, List, Optional

from streamchat.core.config import Settings
from streamchat.llm.entity.provider import ProviderDescriptor, ProviderKind
from streamchat.llm.exceptions import UnknownProviderError


OPENAI = "openai"
GROQ = "groq"
GEMINI = "gemini"
OLLAMA = "ollama"


def build_registry(settings: Settings) -> Dict[str, ProviderDescriptor]:
    """Provider descriptors keyed by id, in display order."""
    descriptors = [
        ProviderDescriptor(
            id=OPENAI,
            display_name="OpenAI",
            kind=ProviderKind.OPENAI_COMPATIBLE,
            base_endpoint=settings.OPENAI_BASE_URL.rstrip("/"),
            requires_credential=True,
            default_model="gpt-4o",
            candidate_models=["gpt-4o", "gpt-4", "gpt-3.5-turbo"],
        ),
        ProviderDescriptor(
            id=GROQ,
            display_name="Groq",
            kind=ProviderKind.OPENAI_COMPATIBLE,
            base_endpoint=settings.GROQ_BASE_URL.rstrip("/"),
            requires_credential=True,
            default_model="mixtral-8x7b-32768",
            candidate_models=["mixtral-8x7b-32768", "llama-3.1-8b-instant"],
        ),
        ProviderDescriptor(
            id=GEMINI,
            display_name="Gemini",
            kind=ProviderKind.GEMINI,
            base_endpoint=settings.GEMINI_BASE_URL.rstrip("/"),
            requires_credential=True,
            default_model="gemini-1.5-flash",
            candidate_models=["gemini-1.5-flash", "gemini-1.5-pro"],
            supports_model_listing=True,
        ),
        ProviderDescriptor(
            id=OLLAMA,
            display_name="Ollama",
            kind=ProviderKind.OLLAMA,
            base_endpoint=settings.OLLAMA_BASE_URL.rstrip("/"),
            requires_credential=False,
            default_model=None,
            candidate_models=[],
            supports_model_listing=True,
        ),
    ]
    return {d.id: d for d in descriptors}


class ProviderRegistry:
    """Read-only lookup over the provider descriptors."""

    def __init__(self, descriptors: Dict[str, ProviderDescriptor]):
        self._descriptors = dict(descriptors)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderRegistry":
        return cls(build_registry(settings))

    def get(self, provider_id: str) -> ProviderDescriptor:
        try:
            return self._descriptors[provider_id]
        except KeyError:
            raise UnknownProviderError(provider_id) from None

    def find(self, provider_id: str) -> Optional[ProviderDescriptor]:
        return self._descriptors.get(provider_id)

    def all(self) -> List[ProviderDescriptor]:
        return list(self._descriptors.values())

    def ids(self) -> List[str]:
        return list(self._descriptors)

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._descriptors
