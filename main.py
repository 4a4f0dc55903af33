# main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import PersistenceBackend, Settings, get_settings
from containers import container
from db import init_db
from errors import ChatAppError

# Импортируем роутеры и модули для 'wire'
import endpoints.dependencies as dependencies_module
import endpoints.api_auth as api_auth_module
import endpoints.api_chats as api_chats_module
import endpoints.api_messages as api_messages_module

logger = logging.getLogger("chat_relay")


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format="[%(asctime)s] %(levelname)s %(name)s - %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if settings.persistence_backend == PersistenceBackend.SQL:
        await init_db(container.db_engine())
    logger.info(
        "Started: backend=%s model=%s key_set=%s dev_mode=%s",
        settings.persistence_backend.value,
        settings.gemini_model,
        bool(settings.gemini_api_key),
        settings.dev_mode,
    )
    yield
    if settings.persistence_backend == PersistenceBackend.SQL:
        await container.db_engine().dispose()


async def chat_app_error_handler(request: Request, exc: ChatAppError):
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse({"error": "Invalid request", "details": details}, status_code=400)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    container.config.from_dict(settings.as_container_config())
    # Подключаем контейнер к модулям, чтобы заработал декоратор @inject
    container.wire(modules=[
        dependencies_module,
        api_auth_module,
        api_chats_module,
        api_messages_module,
    ])

    app = FastAPI(title="Gemini Chat Relay", lifespan=lifespan)
    app.state.settings = settings
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ChatAppError, chat_app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Включаем все наши разделенные роутеры
    app.include_router(api_auth_module.router)
    app.include_router(api_chats_module.router)
    app.include_router(api_messages_module.router)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=False)
