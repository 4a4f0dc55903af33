# services/relay.py
import asyncio
import json
import logging
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from errors import ChatAppError, ProviderErrorCategory

logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "The response could not be saved"

OnComplete = Callable[[str], Awaitable[object]]


def sse_event(payload: dict) -> dict:
    """Событие для EventSourceResponse: только поле data, без имени события."""
    return {"data": json.dumps(payload, ensure_ascii=False)}


def error_event(exc: BaseException) -> dict:
    if isinstance(exc, ChatAppError):
        category = getattr(exc, "category", None)
        payload = {"error": exc.message}
        if category is not None:
            payload["category"] = getattr(category, "value", category)
        return sse_event(payload)
    return sse_event({"error": "Streaming failed", "category": ProviderErrorCategory.UNKNOWN.value})


class StreamingRelay:
    """
    Пересылает фрагменты модели клиенту мелкими кусками и копит полный текст.

    Пауза между кусками нужна только для эффекта "печати" на клиенте.
    Частичный ответ при ошибке не сохраняется.
    """

    def __init__(self, chunk_size: int = 3, chunk_delay: float = 0.02):
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size
        self.chunk_delay = chunk_delay

    def split(self, fragment: str) -> List[str]:
        return [fragment[i:i + self.chunk_size] for i in range(0, len(fragment), self.chunk_size)]

    async def relay(
            self,
            fragments: AsyncIterator[str],
            on_complete: Optional[OnComplete] = None,
    ) -> AsyncIterator[dict]:
        collected: List[str] = []
        try:
            async for fragment in fragments:
                if not fragment:
                    continue
                collected.append(fragment)
                for piece in self.split(fragment):
                    yield sse_event({"content": piece})
                    if self.chunk_delay > 0:
                        await asyncio.sleep(self.chunk_delay)
        except asyncio.CancelledError:
            # Клиент отключился: отмена доходит до запроса к модели
            logger.info("Client disconnected after %d characters, nothing persisted", sum(map(len, collected)))
            raise
        except ChatAppError as exc:
            logger.warning("Stream aborted: %s", exc.message)
            yield error_event(exc)
            return
        except Exception as exc:
            logger.exception("Unexpected streaming failure")
            yield error_event(exc)
            return
        finally:
            aclose = getattr(fragments, "aclose", None)
            if aclose is not None:
                await aclose()

        full_text = "".join(collected)
        if on_complete is not None and full_text:
            try:
                await on_complete(full_text)
            except Exception:
                # Ответ уже у клиента; сбой сохранения виден только в логах и событии
                logger.error("Failed to persist streamed response (%d characters)", len(full_text), exc_info=True)
                yield sse_event({"error": SAVE_FAILED_MESSAGE, "category": "storage"})
                return

        logger.info("Stream completed: %d characters", len(full_text))
        yield sse_event({"done": True})
