# services/gateway.py
import asyncio
import logging
from typing import AsyncIterator, Iterable, List, Mapping, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from errors import ConfigurationError, ProviderError, ProviderErrorCategory

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"

# Роль "assistant" у провайдера называется "model"
PROVIDER_ROLES = {"user": "user", "assistant": "model"}

BLOCKING_FINISH_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "IMAGE_SAFETY"}

AUTH_STATUSES = {"UNAUTHENTICATED", "PERMISSION_DENIED"}
QUOTA_STATUSES = {"RESOURCE_EXHAUSTED"}

# Последний вариант: поиск подстрок в тексте ошибки
_SUBSTRING_HINTS = (
    (ProviderErrorCategory.AUTHENTICATION, ("api key", "api_key", "unauthenticated", "permission denied", "credential")),
    (ProviderErrorCategory.QUOTA, ("quota", "rate limit", "resource exhausted", "too many requests")),
    (ProviderErrorCategory.CONTENT_POLICY, ("safety", "blocked", "content policy", "prohibited")),
    (ProviderErrorCategory.NETWORK, ("network", "timeout", "timed out", "connection", "unreachable", "fetch")),
)


def _infer_from_message(message: str) -> ProviderErrorCategory:
    lower = message.lower()
    for category, needles in _SUBSTRING_HINTS:
        if any(n in lower for n in needles):
            return category
    return ProviderErrorCategory.UNKNOWN


def translate_provider_error(exc: BaseException) -> ProviderError:
    """
    Единственное место, где ошибка клиента провайдера превращается в ProviderError.
    Сначала структурированные коды, потом тип исключения, потом текст.
    """
    if isinstance(exc, ProviderError):
        return exc

    detail = str(exc) or exc.__class__.__name__
    if isinstance(exc, genai_errors.APIError):
        status = (exc.status or "").upper()
        if exc.code in (401, 403) or status in AUTH_STATUSES:
            return ProviderError(ProviderErrorCategory.AUTHENTICATION, detail)
        if exc.code == 429 or status in QUOTA_STATUSES:
            return ProviderError(ProviderErrorCategory.QUOTA, detail)
        return ProviderError(_infer_from_message(exc.message or detail), detail)

    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return ProviderError(ProviderErrorCategory.NETWORK, detail)

    return ProviderError(_infer_from_message(detail), detail)


def _blocked_reason(chunk: types.GenerateContentResponse) -> Optional[str]:
    feedback = chunk.prompt_feedback
    if feedback is not None and feedback.block_reason:
        return str(getattr(feedback.block_reason, "name", feedback.block_reason))
    for candidate in chunk.candidates or []:
        reason = candidate.finish_reason
        if reason is None:
            continue
        name = getattr(reason, "name", str(reason))
        if name in BLOCKING_FINISH_REASONS:
            return name
    return None


class ModelGateway:
    """
    Обёртка над google-genai: история чата -> потоковая генерация.
    Контекст не обрезается, в запрос уходит вся история.
    """

    def __init__(self, api_key: Optional[str], model: str = DEFAULT_MODEL, client: Optional[genai.Client] = None):
        self.api_key = api_key
        self.model = model or DEFAULT_MODEL
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("API key not configured")

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @staticmethod
    def to_contents(history: Iterable[Mapping[str, str]]) -> List[types.Content]:
        contents = []
        for turn in history:
            role = PROVIDER_ROLES.get(str(turn["role"]))
            if role is None:
                raise ValueError(f"unsupported role: {turn['role']!r}")
            contents.append(types.Content(role=role, parts=[types.Part(text=turn["content"])]))
        return contents

    async def stream_completion(self, history: Iterable[Mapping[str, str]]) -> AsyncIterator[str]:
        # Проверка ключа до любого сетевого вызова
        self.ensure_configured()
        contents = self.to_contents(history)
        client = self._get_client()
        logger.info("Starting completion stream: model=%s messages=%d", self.model, len(contents))

        stream = None
        try:
            stream = await client.aio.models.generate_content_stream(model=self.model, contents=contents)
            async for chunk in stream:
                reason = _blocked_reason(chunk)
                if reason:
                    raise ProviderError(ProviderErrorCategory.CONTENT_POLICY, f"blocked: {reason}")
                text = chunk.text
                if text:
                    yield text
        except Exception as exc:
            error = translate_provider_error(exc)
            logger.warning("Provider stream failed: category=%s detail=%s", error.category.value, error.detail)
            if error is exc:
                raise
            raise error from exc
        finally:
            # закрываем HTTP-поток провайдера сразу, не дожидаясь финализатора
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
