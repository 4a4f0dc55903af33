# endpoints/api_auth.py
from typing import Optional

from fastapi import APIRouter, Depends
from dependency_injector.wiring import inject, Provide

from containers import Container
from dtos import DevLoginDTO, SuccessDTO, UserDTO
from errors import AuthenticationRequired, Forbidden, ValidationError
from services.chat_service import ChatService
from services.identity import Identity, IdentityResolver
from .dependencies import get_identity

router = APIRouter(prefix="/api")


@router.get("/")
async def api_root():
    return {"name": "Gemini Chat API"}


@router.get("/auth/me", response_model=UserDTO)
@inject
async def me(
    identity: Optional[Identity] = Depends(get_identity),
    chat_service: ChatService = Depends(Provide[Container.chat_service]),
):
    if identity is None:
        raise AuthenticationRequired("Not authenticated")
    return await chat_service.ensure_user(identity)


@router.post("/auth/dev-login", response_model=UserDTO)
@inject
async def dev_login(
    payload: DevLoginDTO,
    resolver: IdentityResolver = Depends(Provide[Container.identity_resolver]),
    chat_service: ChatService = Depends(Provide[Container.chat_service]),
):
    if not resolver.dev_mode:
        raise Forbidden("Development login only available in dev mode")
    email = (payload.email or "").strip()
    if not email:
        raise ValidationError("Email required")
    identity = resolver.identity_for(email, payload.name)
    return await chat_service.ensure_user(identity)


@router.post("/auth/logout", response_model=SuccessDTO)
async def logout():
    # Сессий на сервере нет: личность приходит в заголовках каждого запроса
    return SuccessDTO()
