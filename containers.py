# containers.py
from dependency_injector import containers, providers
from db import build_engine, build_session_factory
from repositories.sql_store import SqlConversationStore
from repositories.firestore_store import FirestoreConversationStore, build_firestore_client
from services.chat_service import ChatService
from services.gateway import ModelGateway
from services.identity import IdentityResolver
from services.relay import StreamingRelay


class Container(containers.DeclarativeContainer):
    """
    Контейнер зависимостей приложения.
    """
    # Связывание с модулями endpoints делает main.create_app через container.wire

    # Значения приходят из config.Settings (см. main.create_app)
    config = providers.Configuration()

    # --- Провайдеры ---

    # 1. База данных. Singleton: один движок на процесс.
    db_engine = providers.Singleton(build_engine, database_url=config.database_url)
    session_factory = providers.Singleton(build_session_factory, engine=db_engine)

    firestore_client = providers.Singleton(
        build_firestore_client,
        project=config.firestore_project,
        database=config.firestore_database,
    )

    # 2. Хранилище выбирается один раз по PERSISTENCE_BACKEND
    conversation_store = providers.Selector(
        config.persistence_backend,
        sql=providers.Singleton(SqlConversationStore, session_factory=session_factory),
        firestore=providers.Singleton(
            FirestoreConversationStore,
            client=firestore_client,
            chats_collection=config.firestore_chats_collection,
            messages_collection=config.firestore_messages_collection,
            users_collection=config.firestore_users_collection,
        ),
        none=providers.Object(None),
    )

    # 3. Сервисы
    identity_resolver = providers.Singleton(IdentityResolver, dev_mode=config.dev_mode)

    model_gateway = providers.Singleton(
        ModelGateway,
        api_key=config.gemini_api_key,
        model=config.gemini_model,
    )

    streaming_relay = providers.Singleton(
        StreamingRelay,
        chunk_size=config.stream_chunk_size,
        chunk_delay=config.stream_chunk_delay,
    )

    chat_service: providers.Factory[ChatService] = providers.Factory(
        ChatService,
        store=conversation_store,
        gateway=model_gateway,
        relay=streaming_relay,
    )


# Создаем единственный экземпляр контейнера для всего приложения
container = Container()
