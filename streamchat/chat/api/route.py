from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse, StreamingResponse
from typing import Optional

from streamchat.chat.api.dto import (
    EditMessageRequest,
    RegenerateRequest,
    SelectResponseRequest,
    SendMessageRequest,
    StopRequest,
)
from streamchat.chat.api.handler import ChatHandler
from streamchat.core.dto import BaseResponse, to_http_exception
from streamchat.core.logger import get_logger
from streamchat.llm.exceptions import ChatError

chat_router = APIRouter(prefix="/chat", tags=["Chat"])
logger = get_logger("ChatRouter")


def get_chat_handler(request: Request) -> Optional[ChatHandler]:
    """Dependency to get the chat handler from app.state."""
    return getattr(request.app.state, "chat_handler", None)


def _require(handler: Optional[ChatHandler]) -> ChatHandler:
    if not handler:
        raise HTTPException(status_code=503, detail="Chat engine not available")
    return handler


@chat_router.get("/sessions", response_model=BaseResponse)
async def list_sessions(handler: Optional[ChatHandler] = Depends(get_chat_handler)):
    """Sessions, most recently modified first."""
    sessions = await _require(handler).list_sessions()
    return BaseResponse(
        status=True,
        message="Sessions fetched successfully",
        data={"sessions": [s.model_dump() for s in sessions]},
    )


@chat_router.post("/sessions/new", response_model=BaseResponse)
async def new_session(handler: Optional[ChatHandler] = Depends(get_chat_handler)):
    """Start a new conversation. Nothing is stored until its first message."""
    session = await _require(handler).new_session()
    return BaseResponse(status=True, message="New session started", data=session.model_dump())


@chat_router.get("/sessions/{session_id}", response_model=BaseResponse)
async def get_session(session_id: str, handler: Optional[ChatHandler] = Depends(get_chat_handler)):
    try:
        session = await _require(handler).get_session(session_id)
    except ChatError as e:
        raise to_http_exception(e)
    return BaseResponse(status=True, message="Session fetched successfully", data=session.model_dump())


@chat_router.delete("/sessions/{session_id}", response_model=BaseResponse)
async def delete_session(session_id: str, handler: Optional[ChatHandler] = Depends(get_chat_handler)):
    try:
        await _require(handler).delete_session(session_id)
    except ChatError as e:
        raise to_http_exception(e)
    logger.info(f"Session {session_id} deleted via API")
    return BaseResponse(status=True, message="Session deleted successfully", data={"session_id": session_id})


@chat_router.post("/sessions/{session_id}/switch", response_model=BaseResponse)
async def switch_session(session_id: str, handler: Optional[ChatHandler] = Depends(get_chat_handler)):
    try:
        session = await _require(handler).switch_session(session_id)
    except ChatError as e:
        raise to_http_exception(e)
    return BaseResponse(status=True, message="Session switched", data=session.model_dump())


@chat_router.get("/sessions/{session_id}/export", response_class=PlainTextResponse)
async def export_session(session_id: str, handler: Optional[ChatHandler] = Depends(get_chat_handler)):
    """Markdown transcript of the session."""
    try:
        return await _require(handler).export(session_id)
    except ChatError as e:
        raise to_http_exception(e)


@chat_router.post("/send", response_model=BaseResponse)
async def send_message(body: SendMessageRequest, handler: Optional[ChatHandler] = Depends(get_chat_handler)):
    try:
        message = await _require(handler).send(body)
    except ChatError as e:
        raise to_http_exception(e)
    if message is None:
        return BaseResponse(status=True, message="Nothing dispatched", data=None)
    return BaseResponse(status=True, message="Message sent", data=message.model_dump())


@chat_router.post("/send/stream")
async def send_message_stream(body: SendMessageRequest, handler: Optional[ChatHandler] = Depends(get_chat_handler)):
    """
    Streaming send (Server-Sent Events).
    Each generation event for the session is forwarded as `event: <state>`.
    """
    try:
        events = await _require(handler).send_stream(body)
    except ChatError as e:
        raise to_http_exception(e)

    return StreamingResponse(
        events,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@chat_router.post("/stop", response_model=BaseResponse)
async def stop_generation(body: StopRequest, handler: Optional[ChatHandler] = Depends(get_chat_handler)):
    stopped = await _require(handler).stop(body.session_id)
    return BaseResponse(
        status=True,
        message="Generation stopped" if stopped else "No generation in progress",
        data={"stopped": stopped},
    )


@chat_router.post("/regenerate", response_model=BaseResponse)
async def regenerate(body: RegenerateRequest, handler: Optional[ChatHandler] = Depends(get_chat_handler)):
    try:
        message = await _require(handler).regenerate(body)
    except ChatError as e:
        raise to_http_exception(e)
    if message is None:
        return BaseResponse(status=True, message="Nothing dispatched", data=None)
    return BaseResponse(status=True, message="Regenerating", data=message.model_dump())


@chat_router.post("/edit", response_model=BaseResponse)
async def edit_message(body: EditMessageRequest, handler: Optional[ChatHandler] = Depends(get_chat_handler)):
    try:
        message = await _require(handler).edit(body)
    except ChatError as e:
        raise to_http_exception(e)
    if message is None:
        return BaseResponse(status=True, message="Nothing dispatched", data=None)
    return BaseResponse(status=True, message="Message edited and resent", data=message.model_dump())


@chat_router.post("/select-response", response_model=BaseResponse)
async def select_response(body: SelectResponseRequest, handler: Optional[ChatHandler] = Depends(get_chat_handler)):
    try:
        message = await _require(handler).select_response(body)
    except ChatError as e:
        raise to_http_exception(e)
    return BaseResponse(status=True, message="Response selected", data=message.model_dump())
