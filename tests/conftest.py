# tests/conftest.py
import json

import pytest
import pytest_asyncio
from dependency_injector import providers
from fastapi.testclient import TestClient

from config import PersistenceBackend, Settings
from db import build_engine, build_session_factory, init_db
from repositories.firestore_store import FirestoreConversationStore
from repositories.sql_store import SqlConversationStore

from fakes import FakeFirestoreClient, FakeGateway

ALICE = {"x-user-email": "alice@example.com", "x-user-name": "Alice"}
BOB = {"x-user-email": "bob@example.com"}


def parse_events(body: str) -> list:
    """data: {...} -> список словарей в порядке прихода."""
    events = []
    for line in body.splitlines():
        if line.startswith("data:"):
            events.append(json.loads(line[len("data:"):].strip()))
    return events


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    # sse-starlette хранит событие выхода на уровне класса, между тест-клиентами его надо сбрасывать
    from sse_starlette.sse import AppStatus
    AppStatus.should_exit_event = None
    yield


@pytest_asyncio.fixture(params=["sql", "firestore"])
async def store(request, tmp_path):
    """Один и тот же контракт проверяется на обоих хранилищах."""
    if request.param == "sql":
        engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
        await init_db(engine)
        yield SqlConversationStore(build_session_factory(engine))
        await engine.dispose()
    else:
        yield FirestoreConversationStore(FakeFirestoreClient())


@pytest.fixture
def gateway():
    return FakeGateway(["Hello", " world", "!"])


@pytest.fixture
def make_client(tmp_path, gateway):
    """Фабрика TestClient с подменой модели в контейнере."""
    from containers import container
    from main import create_app

    clients = []

    def _make(**overrides) -> TestClient:
        values = {
            "app_env": "development",
            "gemini_api_key": "test-key",
            "database_url": f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
            "persistence_backend": PersistenceBackend.SQL,
            "stream_chunk_delay_ms": 0,
        }
        values.update(overrides)
        app = create_app(Settings(**values))
        container.reset_singletons()
        container.model_gateway.override(providers.Object(gateway))
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
    container.model_gateway.reset_override()
    container.reset_singletons()


@pytest.fixture
def client(make_client):
    return make_client()
