from pydantic import BaseModel, Field
from typing import List, Optional


class SendMessageRequest(BaseModel):
    text: str
    selected_text: Optional[str] = None
    session_id: Optional[str] = None
    # block until the reply has finished streaming
    wait: bool = False


class StopRequest(BaseModel):
    session_id: Optional[str] = None


class RegenerateRequest(BaseModel):
    message_id: str
    session_id: Optional[str] = None
    wait: bool = False


class EditMessageRequest(BaseModel):
    message_id: str
    text: str = Field(..., min_length=1)
    session_id: Optional[str] = None
    wait: bool = False


class SelectResponseRequest(BaseModel):
    message_id: str
    index: int = Field(..., ge=0)
    session_id: Optional[str] = None


class MessageResponse(BaseModel):
    id: str
    role: str
    content: str
    responses: List[str]
    current_response_index: int
    is_generating: bool
    created_at: str


class SessionSummary(BaseModel):
    id: str
    title: str
    model: str
    created_at: str
    last_modified_at: str
    message_count: int
    is_current: bool = False


class SessionResponse(SessionSummary):
    messages: List[MessageResponse] = Field(default_factory=list)
