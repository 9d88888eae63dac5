from abc import ABC, abstractmethod
from typing import List

from streamchat.chat.models.chat_model import ChatSession


class IChatRepository(ABC):
    @abstractmethod
    async def load_sessions(self) -> List[ChatSession]:
        pass

    @abstractmethod
    async def save_sessions(self, sessions: List[ChatSession]) -> None:
        pass
