# endpoints/dependencies.py
from typing import Optional

from fastapi import Depends, Request
from dependency_injector.wiring import inject, Provide

from containers import Container
from errors import AuthenticationRequired
from services.chat_service import ChatService
from services.identity import Identity, IdentityResolver


@inject
def get_identity(
    request: Request,
    resolver: IdentityResolver = Depends(Provide[Container.identity_resolver]),
) -> Optional[Identity]:
    """
    Извлекает пользователя из заголовков прокси (или dev-заголовков).
    """
    return resolver.resolve(request.headers)


def require_identity(identity: Optional[Identity] = Depends(get_identity)) -> Identity:
    if identity is None:
        raise AuthenticationRequired()
    return identity


@inject
async def require_chat_user(
    identity: Identity = Depends(require_identity),
    chat_service: ChatService = Depends(Provide[Container.chat_service]),
) -> Identity:
    # Для /api/chats нужны и пользователь, и хранилище; запись о пользователе создаётся лениво
    chat_service.require_store()
    await chat_service.ensure_user(identity)
    return identity
