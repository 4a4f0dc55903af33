# models.py
from datetime import timezone

from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Index, CheckConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

Base = declarative_base()

MESSAGE_ROLES = ("user", "assistant")


class UtcDateTime(TypeDecorator):
    """Хранит время в UTC и всегда возвращает aware datetime.

    SQLite игнорирует timezone=True и отдаёт naive значения.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class User(Base):
    __tablename__ = "users"
    id = Column(String(64), primary_key=True)
    email = Column(String(320), unique=True, nullable=False)
    name = Column(String(255), nullable=True)
    created_at = Column(UtcDateTime(), nullable=False)
    updated_at = Column(UtcDateTime(), nullable=False)


class Chat(Base):
    __tablename__ = "chats"
    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    created_at = Column(UtcDateTime(), nullable=False)
    updated_at = Column(UtcDateTime(), nullable=False)

    __table_args__ = (Index("idx_chats_updated_at", updated_at.desc()),)


class Message(Base):
    __tablename__ = "messages"
    id = Column(String(64), primary_key=True)
    chat_id = Column(String(64), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(UtcDateTime(), nullable=False, index=True)

    __table_args__ = (CheckConstraint("role IN ('user', 'assistant')", name="ck_messages_role"),)
