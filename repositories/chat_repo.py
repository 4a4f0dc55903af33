# repositories/chat_repo.py
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, update
from models import Chat, Message
from typing import List, Optional
from repositories.base import DEFAULT_CHAT_TITLE, generate_id, utcnow


class ChatRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_chat(self, user_id: str, title: Optional[str]) -> Chat:
        now = utcnow()
        chat = Chat(
            id=generate_id("chat"),
            user_id=user_id,
            title=(title or "").strip() or DEFAULT_CHAT_TITLE,
            created_at=now,
            updated_at=now,
        )
        self.session.add(chat)
        await self.session.commit()
        await self.session.refresh(chat)
        return chat

    async def list_chats_for_user(self, user_id: str) -> List[Chat]:
        q = await self.session.execute(
            select(Chat).where(Chat.user_id == user_id).order_by(Chat.updated_at.desc(), Chat.id.desc())
        )
        return list(q.scalars().all())

    async def get_chat(self, chat_id: str, user_id: str) -> Optional[Chat]:
        q = await self.session.execute(
            select(Chat).where(Chat.id == chat_id, Chat.user_id == user_id)
        )
        return q.scalars().first()

    async def rename_chat(self, chat_id: str, user_id: str, title: str) -> bool:
        result = await self.session.execute(
            update(Chat)
            .where(Chat.id == chat_id, Chat.user_id == user_id)
            .values(title=title, updated_at=utcnow())
        )
        await self.session.commit()
        return result.rowcount > 0

    async def touch_chat(self, chat_id: str, when: datetime) -> None:
        await self.session.execute(
            update(Chat).where(Chat.id == chat_id).values(updated_at=when)
        )
        await self.session.commit()

    async def delete_chat(self, chat_id: str, user_id: str) -> bool:
        """Удаляет сообщения и сам чат одной транзакцией."""
        owned = await self.get_chat(chat_id, user_id)
        if owned is None:
            return False
        await self.session.execute(delete(Message).where(Message.chat_id == chat_id))
        await self.session.execute(delete(Chat).where(Chat.id == chat_id, Chat.user_id == user_id))
        await self.session.commit()
        return True
