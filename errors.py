# errors.py
from enum import Enum
from typing import Optional


class ChatAppError(Exception):
    """Базовая ошибка приложения: текст для клиента + HTTP-статус."""

    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class AuthenticationRequired(ChatAppError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(ChatAppError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(ChatAppError):
    # Одинаковый ответ для "нет такого чата" и "чат чужой"
    status_code = 404
    default_message = "Chat not found"


class ValidationError(ChatAppError):
    status_code = 400
    default_message = "Invalid request"


class ConfigurationError(ChatAppError):
    status_code = 500
    default_message = "Server is not configured"


class StorageError(ChatAppError):
    status_code = 503
    default_message = "Storage is unavailable"
    category = "storage"


class ProviderErrorCategory(str, Enum):
    AUTHENTICATION = "authentication"
    QUOTA = "quota"
    CONTENT_POLICY = "content_policy"
    NETWORK = "network"
    UNKNOWN = "unknown"


PROVIDER_MESSAGES = {
    ProviderErrorCategory.AUTHENTICATION: "The model provider rejected the API credentials",
    ProviderErrorCategory.QUOTA: "The model provider quota or rate limit was exceeded",
    ProviderErrorCategory.CONTENT_POLICY: "The response was blocked by the provider's content policy",
    ProviderErrorCategory.NETWORK: "Could not reach the model provider",
    ProviderErrorCategory.UNKNOWN: "The model provider failed to generate a response",
}


class ProviderError(ChatAppError):
    status_code = 502

    def __init__(
            self,
            category: ProviderErrorCategory = ProviderErrorCategory.UNKNOWN,
            detail: Optional[str] = None,
    ):
        self.category = ProviderErrorCategory(category)
        self.detail = detail
        super().__init__(PROVIDER_MESSAGES[self.category])
