from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from enum import Enum


class MessageRoleStr(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"

# ======================
# Input DTOs
# ======================

class DevLoginDTO(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None


class ChatCreateDTO(BaseModel):
    title: Optional[str] = Field(None, max_length=255)


class ChatRenameDTO(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value


class MessageCreateDTO(BaseModel):
    message: str = Field(..., min_length=1)
    auto_title: bool = Field(False, alias="autoTitle")

    model_config = {"populate_by_name": True}

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be blank")
        return value


class HistoryTurnDTO(BaseModel):
    role: MessageRoleStr
    content: str


class StatelessChatDTO(BaseModel):
    messages: List[HistoryTurnDTO] = Field(..., min_length=1)

# ======================
# Output DTOs
# ======================

class MessageDTO(BaseModel):
    id: str
    chat_id: str
    role: MessageRoleStr
    content: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ChatDTO(BaseModel):
    id: str
    user_id: str
    title: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserDTO(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ChatListDTO(BaseModel):
    chats: List[ChatDTO]


class ChatEnvelopeDTO(BaseModel):
    chat: ChatDTO


class ChatDetailDTO(BaseModel):
    chat: ChatDTO
    messages: List[MessageDTO]


class SuccessDTO(BaseModel):
    success: bool = True
