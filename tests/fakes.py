# tests/fakes.py
import copy
from typing import Dict, List, Optional

from errors import ProviderError
from services.gateway import ModelGateway


class FakeGateway(ModelGateway):
    """Отдаёт заранее заданные фрагменты вместо обращения к модели."""

    def __init__(
            self,
            fragments: Optional[List[str]] = None,
            api_key: Optional[str] = "test-key",
            fail_after: Optional[int] = None,
            error: Optional[Exception] = None,
    ):
        super().__init__(api_key=api_key, model="fake-model")
        self.fragments = list(fragments or [])
        self.fail_after = fail_after
        self.error = error or ProviderError()
        self.histories: List[List[dict]] = []
        self.closed = False

    async def stream_completion(self, history):
        self.ensure_configured()
        self.histories.append([dict(turn) for turn in history])
        try:
            for index, fragment in enumerate(self.fragments):
                if self.fail_after is not None and index >= self.fail_after:
                    raise self.error
                yield fragment
            if self.fail_after is not None and self.fail_after >= len(self.fragments):
                raise self.error
        finally:
            self.closed = True


# --- Firestore ---


class FakeSnapshot:
    def __init__(self, reference: "FakeDocumentReference", data: Optional[dict]):
        self.reference = reference
        self.id = reference.id
        self._data = copy.deepcopy(data)

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[dict]:
        return copy.deepcopy(self._data)

    def get(self, field: str):
        return self._data[field]


class FakeDocumentReference:
    def __init__(self, collection: "FakeCollection", doc_id: str):
        self.collection = collection
        self.id = doc_id

    @property
    def _docs(self) -> Dict[str, dict]:
        return self.collection.docs

    async def get(self) -> FakeSnapshot:
        return FakeSnapshot(self, self._docs.get(self.id))

    async def set(self, data: dict) -> None:
        self._docs[self.id] = copy.deepcopy(data)

    async def update(self, data: dict) -> None:
        self.collection.client.updates += 1
        if self.collection.client.fail_updates:
            from google.api_core import exceptions as google_exceptions
            raise google_exceptions.ServiceUnavailable("update failed")
        if self.id not in self._docs:
            from google.api_core import exceptions as google_exceptions
            raise google_exceptions.NotFound("no document")
        self._docs[self.id].update(copy.deepcopy(data))

    def delete_now(self) -> None:
        self._docs.pop(self.id, None)


class FakeQuery:
    def __init__(self, collection: "FakeCollection", filters=None, order=None):
        self.collection = collection
        self.filters = list(filters or [])
        self.order = list(order or [])

    def where(self, filter=None):
        return FakeQuery(self.collection, self.filters + [filter], self.order)

    def order_by(self, field: str, direction: str = "ASCENDING"):
        return FakeQuery(self.collection, self.filters, self.order + [(field, direction)])

    def _matches(self, data: dict) -> bool:
        for f in self.filters:
            assert f.op_string == "==", "fake supports equality only"
            if data.get(f.field_path) != f.value:
                return False
        return True

    async def stream(self):
        items = [(doc_id, data) for doc_id, data in self.collection.docs.items() if self._matches(data)]
        # как и Firestore, при равных значениях порядок по id документа в направлении последней сортировки
        last_desc = bool(self.order) and self.order[-1][1] == "DESCENDING"
        items.sort(key=lambda item: item[0], reverse=last_desc)
        for field, direction in reversed(self.order):
            items.sort(key=lambda item: item[1][field], reverse=direction == "DESCENDING")
        for doc_id, data in items:
            yield FakeSnapshot(FakeDocumentReference(self.collection, doc_id), data)


class FakeCollection(FakeQuery):
    def __init__(self, client: "FakeFirestoreClient", name: str):
        self.client = client
        self.name = name
        self.docs: Dict[str, dict] = {}
        super().__init__(self)

    def document(self, doc_id: str) -> FakeDocumentReference:
        return FakeDocumentReference(self, doc_id)


class FakeBatch:
    def __init__(self, client: "FakeFirestoreClient"):
        self.client = client
        self.refs: List[FakeDocumentReference] = []

    def delete(self, ref: FakeDocumentReference) -> None:
        self.refs.append(ref)

    async def commit(self) -> None:
        self.client.batch_sizes.append(len(self.refs))
        for ref in self.refs:
            ref.delete_now()


class FakeFirestoreClient:
    """Минимальная in-memory замена firestore.AsyncClient."""

    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}
        self.batch_sizes: List[int] = []
        self.updates = 0
        self.fail_updates = False

    def collection(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(self, name)
        return self.collections[name]

    def batch(self) -> FakeBatch:
        return FakeBatch(self)
