# streamchat/chat/entity/chat.py
"""
Storage DTOs for sessions and messages.
These models are the flattened, JSON-serializable form written to the key-value store.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class StoredMessage(BaseModel):
    """Message DTO representing a single turn and its response variants."""
    id: str
    role: MessageRole
    responses: List[str] = Field(default_factory=list)
    current_response_index: int = 0
    # written as-is, never trusted on load
    is_generating: bool = False
    created_at: str


class StoredSession(BaseModel):
    """Session DTO representing one persisted conversation."""
    id: str
    title: str
    messages: List[StoredMessage] = Field(default_factory=list)
    created_at: str
    last_modified_at: str
    model: str = ""
