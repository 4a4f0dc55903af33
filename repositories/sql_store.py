# repositories/sql_store.py
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dtos import ChatDTO, MessageDTO, MessageRoleStr, UserDTO
from errors import StorageError
from repositories.base import ConversationStore
from repositories.chat_repo import ChatRepository
from repositories.message_repo import MessageRepository
from repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)


class SqlConversationStore(ConversationStore):
    """
    Реляционное хранилище поверх SQLAlchemy.

    Каждая операция открывает свою сессию: ответ модели сохраняется уже
    после того, как сессия запроса закрыта.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            try:
                yield session
            except SQLAlchemyError as exc:
                await session.rollback()
                raise StorageError(f"Database error: {exc.__class__.__name__}") from exc

    async def ensure_user(self, user_id: str, email: str, name: Optional[str] = None) -> UserDTO:
        async with self._session() as session:
            user = await UserRepository(session).ensure_user(user_id, email, name)
            return UserDTO.model_validate(user)

    async def create_chat(self, owner_id: str, title: Optional[str] = None) -> ChatDTO:
        async with self._session() as session:
            chat = await ChatRepository(session).create_chat(owner_id, title)
            return ChatDTO.model_validate(chat)

    async def get_chat(self, chat_id: str, owner_id: str) -> Optional[ChatDTO]:
        async with self._session() as session:
            chat = await ChatRepository(session).get_chat(chat_id, owner_id)
            return ChatDTO.model_validate(chat) if chat else None

    async def list_chats(self, owner_id: str) -> List[ChatDTO]:
        async with self._session() as session:
            chats = await ChatRepository(session).list_chats_for_user(owner_id)
            return [ChatDTO.model_validate(c) for c in chats]

    async def rename_chat(self, chat_id: str, owner_id: str, title: str) -> bool:
        async with self._session() as session:
            return await ChatRepository(session).rename_chat(chat_id, owner_id, title)

    async def delete_chat(self, chat_id: str, owner_id: str) -> bool:
        async with self._session() as session:
            return await ChatRepository(session).delete_chat(chat_id, owner_id)

    async def append_message(
            self,
            chat_id: str,
            owner_id: str,
            role: MessageRoleStr,
            content: str,
    ) -> Optional[MessageDTO]:
        async with self._session() as session:
            chats = ChatRepository(session)
            if await chats.get_chat(chat_id, owner_id) is None:
                return None
            message = await MessageRepository(session).add_message(
                chat_id=chat_id,
                role=MessageRoleStr(role).value,
                content=content,
            )
            dto = MessageDTO.model_validate(message)
            try:
                await chats.touch_chat(chat_id, message.created_at)
            except SQLAlchemyError:
                # сообщение уже сохранено, время чата догонит следующая запись
                await session.rollback()
                logger.warning("Failed to touch chat %s after message %s", chat_id, dto.id, exc_info=True)
            return dto

    async def list_messages(self, chat_id: str, owner_id: str) -> List[MessageDTO]:
        async with self._session() as session:
            if await ChatRepository(session).get_chat(chat_id, owner_id) is None:
                return []
            messages = await MessageRepository(session).get_messages_for_chat(chat_id)
            return [MessageDTO.model_validate(m) for m in messages]
