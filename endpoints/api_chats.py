# endpoints/api_chats.py
from fastapi import APIRouter, Depends
from dependency_injector.wiring import inject, Provide

from containers import Container
from dtos import (
    ChatCreateDTO,
    ChatDetailDTO,
    ChatEnvelopeDTO,
    ChatListDTO,
    ChatRenameDTO,
    SuccessDTO,
)
from services.chat_service import ChatService
from services.identity import Identity
from .dependencies import require_chat_user

router = APIRouter(prefix="/api/chats")


@router.get("", response_model=ChatListDTO)
@inject
async def list_chats(
    identity: Identity = Depends(require_chat_user),
    chat_service: ChatService = Depends(Provide[Container.chat_service]),
):
    chats = await chat_service.list_chats(identity)
    return ChatListDTO(chats=chats)


@router.post("", response_model=ChatEnvelopeDTO)
@inject
async def create_chat(
    payload: ChatCreateDTO,
    identity: Identity = Depends(require_chat_user),
    chat_service: ChatService = Depends(Provide[Container.chat_service]),
):
    chat = await chat_service.create_chat(identity, payload.title)
    return ChatEnvelopeDTO(chat=chat)


@router.get("/{chat_id}", response_model=ChatDetailDTO)
@inject
async def get_chat(
    chat_id: str,
    identity: Identity = Depends(require_chat_user),
    chat_service: ChatService = Depends(Provide[Container.chat_service]),
):
    chat, messages = await chat_service.get_chat(identity, chat_id)
    return ChatDetailDTO(chat=chat, messages=messages)


@router.patch("/{chat_id}", response_model=SuccessDTO)
@inject
async def rename_chat(
    chat_id: str,
    payload: ChatRenameDTO,
    identity: Identity = Depends(require_chat_user),
    chat_service: ChatService = Depends(Provide[Container.chat_service]),
):
    await chat_service.rename_chat(identity, chat_id, payload.title)
    return SuccessDTO()


@router.delete("/{chat_id}", response_model=SuccessDTO)
@inject
async def delete_chat(
    chat_id: str,
    identity: Identity = Depends(require_chat_user),
    chat_service: ChatService = Depends(Provide[Container.chat_service]),
):
    await chat_service.delete_chat(identity, chat_id)
    return SuccessDTO()
