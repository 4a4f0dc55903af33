# repositories/firestore_store.py
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from dtos import ChatDTO, MessageDTO, MessageRoleStr, UserDTO
from errors import StorageError
from repositories.base import DEFAULT_CHAT_TITLE, ConversationStore, generate_id, utcnow

logger = logging.getLogger(__name__)

# Лимит операций в одном WriteBatch
BATCH_LIMIT = 500


def build_firestore_client(project: Optional[str] = None, database: Optional[str] = None) -> firestore.AsyncClient:
    kwargs: Dict[str, Any] = {}
    if project:
        kwargs["project"] = project
    if database:
        kwargs["database"] = database
    return firestore.AsyncClient(**kwargs)


def _chat_from_snapshot(snapshot) -> ChatDTO:
    data = snapshot.to_dict()
    return ChatDTO(
        id=snapshot.id,
        user_id=data["userId"],
        title=data["title"],
        created_at=data["createdAt"],
        updated_at=data["updatedAt"],
    )


def _message_from_snapshot(snapshot) -> MessageDTO:
    data = snapshot.to_dict()
    return MessageDTO(
        id=snapshot.id,
        chat_id=data["chatId"],
        role=data["role"],
        content=data["content"],
        created_at=data["createdAt"],
    )


class FirestoreConversationStore(ConversationStore):
    """
    Документное хранилище: коллекции чатов, сообщений и пользователей.

    Запросы list_chats и list_messages требуют составных индексов
    (userId + updatedAt, chatId + createdAt).
    """

    def __init__(
            self,
            client: firestore.AsyncClient,
            chats_collection: str = "user_chats",
            messages_collection: str = "user_messages",
            users_collection: str = "users",
    ):
        self.client = client
        self.chats = client.collection(chats_collection)
        self.messages = client.collection(messages_collection)
        self.users = client.collection(users_collection)

    @asynccontextmanager
    async def _guard(self) -> AsyncIterator[None]:
        try:
            yield
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"Firestore error: {exc.__class__.__name__}") from exc

    async def _owned_chat(self, chat_id: str, owner_id: str):
        snapshot = await self.chats.document(chat_id).get()
        if not snapshot.exists or snapshot.get("userId") != owner_id:
            return None
        return snapshot

    async def ensure_user(self, user_id: str, email: str, name: Optional[str] = None) -> UserDTO:
        async with self._guard():
            ref = self.users.document(user_id)
            snapshot = await ref.get()
            if snapshot.exists:
                data = snapshot.to_dict()
                if name and name != data.get("name"):
                    data["name"] = name
                    data["updatedAt"] = utcnow()
                    await ref.update({"name": name, "updatedAt": data["updatedAt"]})
            else:
                now = utcnow()
                data = {"email": email, "name": name, "createdAt": now, "updatedAt": now}
                await ref.set(data)
            return UserDTO(
                id=user_id,
                email=data["email"],
                name=data.get("name"),
                created_at=data.get("createdAt"),
                updated_at=data.get("updatedAt"),
            )

    async def create_chat(self, owner_id: str, title: Optional[str] = None) -> ChatDTO:
        chat_id = generate_id("chat")
        now = utcnow()
        data = {
            "userId": owner_id,
            "title": (title or "").strip() or DEFAULT_CHAT_TITLE,
            "createdAt": now,
            "updatedAt": now,
        }
        async with self._guard():
            await self.chats.document(chat_id).set(data)
        return ChatDTO(id=chat_id, user_id=owner_id, title=data["title"], created_at=now, updated_at=now)

    async def get_chat(self, chat_id: str, owner_id: str) -> Optional[ChatDTO]:
        async with self._guard():
            snapshot = await self._owned_chat(chat_id, owner_id)
        return _chat_from_snapshot(snapshot) if snapshot else None

    async def list_chats(self, owner_id: str) -> List[ChatDTO]:
        query = (
            self.chats
            .where(filter=FieldFilter("userId", "==", owner_id))
            .order_by("updatedAt", direction=firestore.Query.DESCENDING)
        )
        async with self._guard():
            return [_chat_from_snapshot(s) async for s in query.stream()]

    async def rename_chat(self, chat_id: str, owner_id: str, title: str) -> bool:
        async with self._guard():
            snapshot = await self._owned_chat(chat_id, owner_id)
            if snapshot is None:
                return False
            await snapshot.reference.update({"title": title, "updatedAt": utcnow()})
        return True

    async def delete_chat(self, chat_id: str, owner_id: str) -> bool:
        """
        Сообщения удаляются раньше чата: при сбое между батчами остаются
        только осиротевшие сообщения, а не чат без части истории.
        """
        async with self._guard():
            snapshot = await self._owned_chat(chat_id, owner_id)
            if snapshot is None:
                return False
            query = self.messages.where(filter=FieldFilter("chatId", "==", chat_id))
            refs = [s.reference async for s in query.stream()]
            refs.append(snapshot.reference)
            for start in range(0, len(refs), BATCH_LIMIT):
                batch = self.client.batch()
                for ref in refs[start:start + BATCH_LIMIT]:
                    batch.delete(ref)
                await batch.commit()
        return True

    async def append_message(
            self,
            chat_id: str,
            owner_id: str,
            role: MessageRoleStr,
            content: str,
    ) -> Optional[MessageDTO]:
        async with self._guard():
            snapshot = await self._owned_chat(chat_id, owner_id)
            if snapshot is None:
                return None
            message_id = generate_id("msg")
            now = utcnow()
            data = {
                "chatId": chat_id,
                "role": MessageRoleStr(role).value,
                "content": content,
                "createdAt": now,
            }
            await self.messages.document(message_id).set(data)
        try:
            await snapshot.reference.update({"updatedAt": now})
        except google_exceptions.GoogleAPIError:
            logger.warning("Failed to touch chat %s after message %s", chat_id, message_id, exc_info=True)
        return MessageDTO(id=message_id, chat_id=chat_id, role=data["role"], content=content, created_at=now)

    async def list_messages(self, chat_id: str, owner_id: str) -> List[MessageDTO]:
        async with self._guard():
            if await self._owned_chat(chat_id, owner_id) is None:
                return []
            query = (
                self.messages
                .where(filter=FieldFilter("chatId", "==", chat_id))
                .order_by("createdAt")
            )
            return [_message_from_snapshot(s) async for s in query.stream()]
