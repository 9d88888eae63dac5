# streamchat/chat/models/chat_model.py
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from streamchat.chat.entity.chat import MessageRole
from streamchat.llm.entity.provider import ConversationTurn

DEFAULT_TITLE = "Untitled"
PLACEHOLDER_TITLES = frozenset({DEFAULT_TITLE, "New Chat", ""})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class ChatMessage(BaseModel):
    """
    Live, mutable message owned by the generation controller.

    Effective content is `responses[current_response_index]`. User messages hold exactly
    one response; assistant messages gain one variant per regeneration.
    """
    id: str = Field(default_factory=new_id)
    role: MessageRole
    responses: List[str] = Field(default_factory=list)
    current_response_index: int = 0
    is_generating: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    # in-progress variant of a regeneration; never persisted
    draft: Optional[str] = Field(default=None, exclude=True)

    @classmethod
    def user(cls, text: str) -> "ChatMessage":
        return cls(role=MessageRole.USER, responses=[text])

    @classmethod
    def assistant(cls, text: str) -> "ChatMessage":
        return cls(role=MessageRole.ASSISTANT, responses=[text])

    @classmethod
    def placeholder(cls) -> "ChatMessage":
        return cls(role=MessageRole.ASSISTANT, responses=[], is_generating=True)

    @property
    def content(self) -> str:
        if not self.responses:
            return ""
        index = min(max(self.current_response_index, 0), len(self.responses) - 1)
        return self.responses[index]

    @property
    def response_count(self) -> int:
        return len(self.responses)

    def add_response(self, text: str) -> None:
        """Append a variant and make it current."""
        self.responses.append(text)
        self.current_response_index = len(self.responses) - 1

    def select_response(self, index: int) -> bool:
        if 0 <= index < len(self.responses):
            self.current_response_index = index
            return True
        return False


class ChatSession(BaseModel):
    """Represents a conversation with its ordered history."""
    id: str = Field(default_factory=new_id)
    title: str = DEFAULT_TITLE
    messages: List[ChatMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    last_modified_at: datetime = Field(default_factory=utcnow)
    model: str = ""

    @property
    def has_placeholder_title(self) -> bool:
        return self.title.strip() in PLACEHOLDER_TITLES

    @property
    def user_message_count(self) -> int:
        return sum(1 for m in self.messages if m.role == MessageRole.USER)

    def touch(self) -> None:
        self.last_modified_at = utcnow()

    def index_of(self, message_id: str) -> Optional[int]:
        for i, message in enumerate(self.messages):
            if message.id == message_id:
                return i
        return None

    def find_message(self, message_id: str) -> Optional[ChatMessage]:
        index = self.index_of(message_id)
        return self.messages[index] if index is not None else None


class GenerationRequest(BaseModel):
    """Built fresh for every dispatch; never persisted."""
    model_config = ConfigDict(frozen=True)

    session_id: str
    target_message_id: str
    conversation: List[ConversationTurn]
    provider_id: str
    model: str
    regenerate: bool = False
