from datetime import date, datetime
from decimal import Decimal

import pytest

from src.utils.firestore_manager import (
    DocumentStore,
    FirestoreManager,
    InMemoryDocumentStore,
    trip_collection_path,
    trip_document_path,
    user_document_path,
)


def test_trip_paths():
    assert user_document_path("u1") == "users/u1"
    assert trip_collection_path("u1") == "users/u1/trips"
    assert trip_document_path("u1", "t1") == "users/u1/trips/t1"


@pytest.mark.asyncio
async def test_set_get_update_delete():
    store = InMemoryDocumentStore()
    path = trip_document_path("u1", "t1")

    await store.set(path, {"destination": "Paris", "status": "planning"})
    assert await store.get(path) == {"destination": "Paris", "status": "planning", "id": "t1"}

    assert await store.update(path, {"status": "planned"}) is True
    assert (await store.get(path))["status"] == "planned"

    assert await store.delete(path) is True
    assert await store.get(path) is None
    assert await store.delete(path) is False
    assert await store.update(path, {"status": "x"}) is False


@pytest.mark.asyncio
async def test_values_are_sanitized_and_copied():
    store = InMemoryDocumentStore()
    path = "users/u1/trips/t1"
    doc = {"start": date(2025, 6, 1), "at": datetime(2025, 6, 1, 9, 30), "cost": Decimal("10.5"), "tags": {"a"}}

    await store.set(path, doc)
    stored = await store.get(path)
    stored["cost"] = 0

    again = await store.get(path)
    assert again["start"] == "2025-06-01"
    assert again["at"] == "2025-06-01T09:30:00"
    assert again["cost"] == 10.5
    assert again["tags"] == ["a"]


@pytest.mark.asyncio
async def test_list_children_only_direct_documents():
    store = InMemoryDocumentStore()
    await store.set("users/u1/trips/t1", {"n": 1})
    await store.set("users/u1/trips/t2", {"n": 2})
    await store.set("users/u2/trips/t3", {"n": 3})
    await store.set("users/u1/trips/t1/notes/n1", {"n": 4})

    children = await store.list_children("users/u1/trips")

    assert sorted(c["id"] for c in children) == ["t1", "t2"]


@pytest.mark.asyncio
async def test_path_shape_is_enforced():
    store = InMemoryDocumentStore()
    with pytest.raises(ValueError):
        await store.get("users/u1/trips")
    with pytest.raises(ValueError):
        await store.list_children("users/u1")
    with pytest.raises(ValueError):
        await store.set("", {})


class _Snapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class _DocRef:
    def __init__(self, db, key):
        self.db, self.key = db, key

    def get(self):
        return _Snapshot(self.key.rsplit("/", 1)[-1], self.db.get(self.key))

    def set(self, data):
        self.db[self.key] = data

    def update(self, data):
        self.db[self.key].update(data)

    def delete(self):
        del self.db[self.key]


class _FakeFirestoreClient:
    def __init__(self):
        self.db = {}

    def document(self, *segments):
        return _DocRef(self.db, "/".join(segments))


@pytest.mark.asyncio
async def test_firestore_manager_maps_paths_to_documents():
    client = _FakeFirestoreClient()
    manager = FirestoreManager(client=client)

    await manager.set("users/u1/trips/t1", {"startDate": date(2025, 6, 1)})
    assert client.db == {"users/u1/trips/t1": {"startDate": "2025-06-01"}}

    assert await manager.update("users/u1/trips/t1", {"status": "planned"}) is True
    assert (await manager.get("users/u1/trips/t1"))["status"] == "planned"
    assert await manager.update("users/u1/trips/missing", {"status": "planned"}) is False
    assert await manager.delete("users/u1/trips/t1") is True
    assert await manager.get("users/u1/trips/t1") is None


def test_document_store_is_abstract():
    with pytest.raises(TypeError):
        DocumentStore()

    class PartialStore(DocumentStore):
        async def get(self, path):
            return None

    with pytest.raises(TypeError):
        PartialStore()


@pytest.mark.asyncio
async def test_profile_document_is_not_listed_with_trips():
    store = InMemoryDocumentStore()
    await store.set(user_document_path("u1"), {"uid": "u1"})
    await store.set(trip_document_path("u1", "t1"), {"n": 1})

    assert [c["id"] for c in await store.list_children(trip_collection_path("u1"))] == ["t1"]
    assert (await store.get(user_document_path("u1")))["id"] == "u1"
