from fastapi import HTTPException
from pydantic import BaseModel

from streamchat.llm.exceptions import (
    ChatError,
    InvalidMessageError,
    MessageNotFoundError,
    NoModelSelectedError,
    SessionNotFoundError,
    UnknownProviderError,
)


class BaseResponse(BaseModel):
    status: bool
    message: str
    data: dict | None = None


def to_http_exception(error: ChatError) -> HTTPException:
    """Map an engine error raised by a lookup or command to an HTTP error."""
    if isinstance(error, (SessionNotFoundError, MessageNotFoundError, UnknownProviderError)):
        return HTTPException(status_code=404, detail=error.user_message)
    if isinstance(error, NoModelSelectedError):
        return HTTPException(status_code=409, detail=error.user_message)
    if isinstance(error, InvalidMessageError):
        return HTTPException(status_code=400, detail=error.user_message)
    return HTTPException(status_code=502, detail=error.user_message)
