# services/titles.py
from repositories.base import DEFAULT_CHAT_TITLE

TITLE_MAX_LENGTH = 60
TITLE_MIN_LENGTH = 10
ELLIPSIS = "..."


def generate_title(first_message: str) -> str:
    """
    Заголовок чата из первого сообщения пользователя.
    Слишком короткий текст даёт заголовок по умолчанию.
    """
    cleaned = first_message.strip().replace("\n", " ")[:TITLE_MAX_LENGTH]
    if len(cleaned) < TITLE_MIN_LENGTH:
        return DEFAULT_CHAT_TITLE
    return cleaned + ELLIPSIS if len(cleaned) == TITLE_MAX_LENGTH else cleaned
