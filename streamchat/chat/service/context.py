"""
Conversation context construction.

Three policies exist side by side: a trailing window for regular sends, the full prefix
for regeneration, and user turns only for edit-and-resend.
"""

from typing import List, Optional

from streamchat.agents.prompt import SELECTION_SYSTEM_PROMPT
from streamchat.chat.entity.chat import MessageRole
from streamchat.chat.models.chat_model import ChatMessage
from streamchat.llm.entity.provider import ConversationTurn


def to_turn(message: ChatMessage) -> ConversationTurn:
    role = "user" if message.role == MessageRole.USER else "assistant"
    return ConversationTurn(role=role, content=message.content)


def _turns(messages: List[ChatMessage]) -> List[ConversationTurn]:
    # empty placeholders left behind by failed generations carry nothing to send
    return [to_turn(m) for m in messages if m.content]


def send_context(
    messages: List[ChatMessage],
    user_message: ChatMessage,
    text: str,
    window: int,
    selection: Optional[str] = None,
) -> List[ConversationTurn]:
    """
    `messages` already ends with `user_message`. The window is taken over that list,
    the new turn is then re-added with its raw text (without the selection decoration).
    """
    turns: List[ConversationTurn] = []
    if selection:
        turns.append(ConversationTurn(role="system", content=SELECTION_SYSTEM_PROMPT.format(selection=selection)))
    recent = messages[-window:] if window > 0 else []
    turns.extend(_turns([m for m in recent if m.id != user_message.id]))
    turns.append(ConversationTurn(role="user", content=text))
    return turns


def regenerate_context(messages: List[ChatMessage], target_index: int) -> List[ConversationTurn]:
    return _turns(messages[:target_index])


def edit_context(messages: List[ChatMessage]) -> List[ConversationTurn]:
    return _turns([m for m in messages if m.role == MessageRole.USER])
