# repositories/base.py
import secrets
import string
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

from dtos import ChatDTO, MessageDTO, MessageRoleStr, UserDTO

DEFAULT_CHAT_TITLE = "New Chat"

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_id(prefix: str) -> str:
    """
    chat_<наносекунды>_<9 случайных символов>.
    Время фиксированной ширины, поэтому id сортируются по времени создания.
    """
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}_{time.time_ns():020d}_{suffix}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationStore(ABC):
    """
    Хранилище чатов и сообщений.

    Каждая операция получает owner_id явно: проверка владельца - часть
    поиска, поэтому чужой чат неотличим от несуществующего.
    """

    @abstractmethod
    async def ensure_user(self, user_id: str, email: str, name: Optional[str] = None) -> UserDTO:
        ...

    @abstractmethod
    async def create_chat(self, owner_id: str, title: Optional[str] = None) -> ChatDTO:
        ...

    @abstractmethod
    async def get_chat(self, chat_id: str, owner_id: str) -> Optional[ChatDTO]:
        ...

    @abstractmethod
    async def list_chats(self, owner_id: str) -> List[ChatDTO]:
        ...

    @abstractmethod
    async def rename_chat(self, chat_id: str, owner_id: str, title: str) -> bool:
        ...

    @abstractmethod
    async def delete_chat(self, chat_id: str, owner_id: str) -> bool:
        ...

    @abstractmethod
    async def append_message(
            self,
            chat_id: str,
            owner_id: str,
            role: MessageRoleStr,
            content: str,
    ) -> Optional[MessageDTO]:
        ...

    @abstractmethod
    async def list_messages(self, chat_id: str, owner_id: str) -> List[MessageDTO]:
        ...
