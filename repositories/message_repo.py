from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from models import Message
from typing import List
from repositories.base import generate_id, utcnow


class MessageRepository:
    """
    Репозиторий для управления сообщениями в базе данных.
    Сообщения только добавляются: не редактируются и не переставляются.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_message(self, chat_id: str, role: str, content: str) -> Message:
        """Сохраняет новое сообщение в базу данных."""
        message = Message(
            id=generate_id("msg"),
            chat_id=chat_id,
            role=role,
            content=content,
            created_at=utcnow(),
        )
        self.session.add(message)
        await self.session.commit()
        await self.session.refresh(message)
        return message

    async def get_messages_for_chat(self, chat_id: str) -> List[Message]:
        """
        Получает все сообщения для чата, отсортированные по времени.
        """
        q = await self.session.execute(
            select(Message)
            .where(Message.chat_id == chat_id)
            .order_by(Message.created_at, Message.id)
        )
        return list(q.scalars().all())
