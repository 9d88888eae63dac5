# streamchat/llm/entity/provider.py
"""
Value objects shared by the provider registry, adapters and router.
"""

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProviderKind(str, Enum):
    """Wire-protocol family of a backend."""
    OPENAI_COMPATIBLE = "openai_compatible"
    GEMINI = "gemini"
    OLLAMA = "ollama"


class ProviderDescriptor(BaseModel):
    """Static description of a supported backend."""
    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    kind: ProviderKind
    base_endpoint: str
    requires_credential: bool
    default_model: Optional[str] = None
    # fallback used only when live model discovery fails or is unsupported
    candidate_models: List[str] = Field(default_factory=list)
    supports_model_listing: bool = False


class ConversationTurn(BaseModel):
    """One normalized {role, content} entry handed to an adapter."""
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str
