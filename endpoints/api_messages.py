# endpoints/api_messages.py
from fastapi import APIRouter, Depends
from dependency_injector.wiring import inject, Provide
# Это зависимость из `pip install sse-starlette`
from sse_starlette.sse import EventSourceResponse

from containers import Container
from dtos import MessageCreateDTO, StatelessChatDTO
from services.chat_service import ChatService
from services.identity import Identity
from .dependencies import require_chat_user

router = APIRouter(prefix="/api")


@router.post("/chats/{chat_id}/messages")
@inject
async def send_message(
    chat_id: str,
    payload: MessageCreateDTO,
    identity: Identity = Depends(require_chat_user),
    chat_service: ChatService = Depends(Provide[Container.chat_service]),
):
    # Ошибки до начала потока уходят обычным HTTP-ответом
    events = await chat_service.send_message(
        identity,
        chat_id,
        payload.message,
        auto_title=payload.auto_title,
    )
    return EventSourceResponse(events, sep="\n")


@router.post("/chat")
@inject
async def stateless_chat(
    payload: StatelessChatDTO,
    chat_service: ChatService = Depends(Provide[Container.chat_service]),
):
    """
    Чат без сохранения: история приходит целиком от клиента.
    """
    history = [turn.model_dump(mode="json") for turn in payload.messages]
    events = chat_service.stream_stateless(history)
    return EventSourceResponse(events, sep="\n")
