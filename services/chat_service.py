# services/chat_service.py
import logging
from typing import AsyncIterator, Iterable, List, Mapping, Optional, Tuple

from dtos import ChatDTO, MessageDTO, MessageRoleStr, UserDTO
from errors import ConfigurationError, NotFound
from repositories.base import DEFAULT_CHAT_TITLE, ConversationStore
from services.gateway import ModelGateway
from services.identity import Identity
from services.relay import StreamingRelay
from services.titles import generate_title

logger = logging.getLogger(__name__)

STORE_NOT_CONFIGURED = "Database not configured. Set PERSISTENCE_BACKEND to enable chat persistence."


class ChatService:
    """
    Единый сценарий разговора. Хранилище выбирается конфигурацией
    (sql / firestore / none); без хранилища доступен только stateless-чат.
    """

    def __init__(
            self,
            store: Optional[ConversationStore],
            gateway: ModelGateway,
            relay: StreamingRelay,
    ):
        self.store = store
        self.gateway = gateway
        self.relay = relay

    @property
    def persistence_enabled(self) -> bool:
        return self.store is not None

    def require_store(self) -> ConversationStore:
        if self.store is None:
            raise ConfigurationError(STORE_NOT_CONFIGURED, status_code=503)
        return self.store

    # --- пользователи ---

    async def ensure_user(self, identity: Identity) -> UserDTO:
        if self.store is None:
            return UserDTO(id=identity.id, email=identity.email, name=identity.name)
        return await self.store.ensure_user(identity.id, identity.email, identity.name)

    # --- чаты ---

    async def list_chats(self, identity: Identity) -> List[ChatDTO]:
        return await self.require_store().list_chats(identity.id)

    async def create_chat(self, identity: Identity, title: Optional[str] = None) -> ChatDTO:
        return await self.require_store().create_chat(identity.id, title or DEFAULT_CHAT_TITLE)

    async def get_chat(self, identity: Identity, chat_id: str) -> Tuple[ChatDTO, List[MessageDTO]]:
        store = self.require_store()
        chat = await store.get_chat(chat_id, identity.id)
        if chat is None:
            raise NotFound()
        messages = await store.list_messages(chat_id, identity.id)
        return chat, messages

    async def rename_chat(self, identity: Identity, chat_id: str, title: str) -> None:
        if not await self.require_store().rename_chat(chat_id, identity.id, title):
            raise NotFound()

    async def delete_chat(self, identity: Identity, chat_id: str) -> None:
        if not await self.require_store().delete_chat(chat_id, identity.id):
            raise NotFound()

    # --- сообщения ---

    async def send_message(
            self,
            identity: Identity,
            chat_id: str,
            text: str,
            auto_title: bool = False,
    ) -> AsyncIterator[dict]:
        """
        Всё, что может упасть до начала потока, падает здесь обычным исключением.
        Возвращает поток событий, который по завершении сохранит ответ модели.
        """
        store = self.require_store()
        self.gateway.ensure_configured()

        chat = await store.get_chat(chat_id, identity.id)
        if chat is None:
            raise NotFound()

        user_message = await store.append_message(chat_id, identity.id, MessageRoleStr.USER, text)
        if user_message is None:
            # чат удалили между проверкой и записью
            raise NotFound()

        if auto_title and chat.title == DEFAULT_CHAT_TITLE:
            title = generate_title(text)
            if title != chat.title:
                await store.rename_chat(chat_id, identity.id, title)

        history = await store.list_messages(chat_id, identity.id)
        turns = [{"role": m.role.value, "content": m.content} for m in history]
        logger.info("Relaying completion for chat %s (%d messages)", chat_id, len(turns))

        async def save_reply(full_text: str) -> None:
            saved = await store.append_message(chat_id, identity.id, MessageRoleStr.ASSISTANT, full_text)
            if saved is None:
                raise NotFound("Chat was deleted before the response was saved")

        return self.relay.relay(self.gateway.stream_completion(turns), on_complete=save_reply)

    def stream_stateless(self, history: Iterable[Mapping[str, str]]) -> AsyncIterator[dict]:
        self.gateway.ensure_configured()
        turns = [{"role": str(getattr(t["role"], "value", t["role"])), "content": t["content"]} for t in history]
        logger.info("Relaying stateless completion (%d messages)", len(turns))
        return self.relay.relay(self.gateway.stream_completion(turns))
