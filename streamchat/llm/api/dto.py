# streamchat/llm/api/dto.py
from pydantic import BaseModel, Field, SecretStr
from typing import List, Optional


class SelectProviderRequest(BaseModel):
    provider_id: str


class SelectModelRequest(BaseModel):
    model: str = Field(..., min_length=1)


class ToggleModelRequest(BaseModel):
    model: Optional[str] = None
    # "enable_all" / "disable_all" act on the whole catalog
    action: Optional[str] = Field(default=None, pattern="^(enable_all|disable_all)$")


class ModelInfo(BaseModel):
    name: str
    enabled: bool


class ProviderInfo(BaseModel):
    id: str
    display_name: str
    kind: str
    requires_credential: bool
    available: bool
    default_model: Optional[str] = None
    models: List[ModelInfo] = Field(default_factory=list)


class ProviderListResponse(BaseModel):
    providers: List[ProviderInfo]
    selected_provider: Optional[str] = None
    selected_model: Optional[str] = None


class CredentialRequest(BaseModel):
    # a blank key removes the runtime credential
    api_key: SecretStr
