# config.py
import os
from enum import Enum
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError as PydanticValidationError

from errors import ConfigurationError


load_dotenv()

DEV_ENVIRONMENTS = {"dev", "development", "local"}


class PersistenceBackend(str, Enum):
    SQL = "sql"
    FIRESTORE = "firestore"
    NONE = "none"


class Settings(BaseModel):
    """
    Настройки приложения из переменных окружения (и .env).
    Все ключи и параметры хранилища собраны здесь.
    """

    app_env: str = "production"
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"

    persistence_backend: PersistenceBackend = PersistenceBackend.SQL
    database_url: str = "sqlite+aiosqlite:///./chat_app.db"

    firestore_project: Optional[str] = None
    firestore_database: Optional[str] = None
    firestore_chats_collection: str = "user_chats"
    firestore_messages_collection: str = "user_messages"
    firestore_users_collection: str = "users"

    stream_chunk_size: int = 3
    stream_chunk_delay_ms: int = 20

    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"

    @property
    def dev_mode(self) -> bool:
        return self.app_env.lower() in DEV_ENVIRONMENTS

    @property
    def stream_chunk_delay(self) -> float:
        return self.stream_chunk_delay_ms / 1000

    def as_container_config(self) -> dict:
        """Плоский словарь для providers.Configuration."""
        data = self.model_dump(mode="json")
        data["dev_mode"] = self.dev_mode
        data["stream_chunk_delay"] = self.stream_chunk_delay
        return data

    @classmethod
    def from_env(cls) -> "Settings":
        try:
            return cls(**cls._read_env())
        except (PydanticValidationError, ValueError) as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    @staticmethod
    def _read_env() -> dict:
        values = {
            "app_env": os.getenv("APP_ENV", "production"),
            "gemini_api_key": os.getenv("GEMINI_API_KEY") or None,
            "gemini_model": os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
            "persistence_backend": os.getenv("PERSISTENCE_BACKEND", "sql").lower(),
            "database_url": os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./chat_app.db"),
            "firestore_project": os.getenv("FIRESTORE_PROJECT") or None,
            "firestore_database": os.getenv("FIRESTORE_DATABASE") or None,
            "firestore_chats_collection": os.getenv("FIRESTORE_CHATS_COLLECTION", "user_chats"),
            "firestore_messages_collection": os.getenv("FIRESTORE_MESSAGES_COLLECTION", "user_messages"),
            "firestore_users_collection": os.getenv("FIRESTORE_USERS_COLLECTION", "users"),
            "stream_chunk_size": int(os.getenv("STREAM_CHUNK_SIZE", "3")),
            "stream_chunk_delay_ms": int(os.getenv("STREAM_CHUNK_DELAY_MS", "20")),
            "cors_origins": [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
            "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        }
        return values


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
