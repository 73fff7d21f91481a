"""
Tests for storage backends
"""

import pytest
from datetime import datetime, timezone

from somiti.storage import InMemoryStorage, SQLiteStorage, create_storage


test_data = {
    "id": "rec_001",
    "member_id": "M001",
    "amount": "100.50",
    "created_at": datetime.now(timezone.utc).isoformat(),
    "updated_at": datetime.now(timezone.utc).isoformat()
}


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(tmp_path / "somiti.db")
    yield backend
    backend.close()


class TestStorageBackends:

    def test_save_and_load(self, storage):
        storage.save("loans", "rec_001", test_data)

        assert storage.load("loans", "rec_001") == test_data
        assert storage.exists("loans", "rec_001")
        assert not storage.exists("loans", "missing")
        assert storage.load("loans", "missing") is None

    def test_load_all_keeps_insertion_order_on_update(self, storage):
        storage.save("loans", "a", {"id": "a", "v": 1})
        storage.save("loans", "b", {"id": "b", "v": 1})
        storage.save("loans", "a", {"id": "a", "v": 2})

        assert [r["id"] for r in storage.load_all("loans")] == ["a", "b"]
        assert storage.load("loans", "a")["v"] == 2

    def test_find(self, storage):
        storage.save("members", "1", {"member_id": "M001", "role": "member"})
        storage.save("members", "2", {"member_id": "M002", "role": "agent"})

        assert [r["member_id"] for r in storage.find("members", {"role": "agent"})] == ["M002"]
        assert storage.find("members", {"member_id": "M404"}) == []

    def test_delete_and_count(self, storage):
        storage.save("t", "1", {"x": 1})
        storage.save("t", "2", {"x": 2})
        assert storage.count("t") == 2

        assert storage.delete("t", "1")
        assert not storage.delete("t", "1")
        assert storage.count("t") == 1
        assert storage.load("t", "1") is None

    def test_loaded_records_are_copies(self, storage):
        storage.save("t", "1", {"items": [1]})
        loaded = storage.load("t", "1")
        loaded["items"].append(2)

        assert storage.load("t", "1") == {"items": [1]}


class TestSQLiteStorage:

    def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "ledger.db"
        first = SQLiteStorage(path)
        first.save("loans", "L1", {"total_loan": "600.00"})
        first.close()

        second = SQLiteStorage(path)
        assert second.load("loans", "L1") == {"total_loan": "600.00"}
        second.close()

    def test_rejects_unsafe_table_name(self):
        storage = SQLiteStorage()
        with pytest.raises(ValueError):
            storage.save("loans; DROP TABLE x", "1", {})


class TestCreateStorage:

    def test_memory_url(self):
        assert isinstance(create_storage("memory://"), InMemoryStorage)

    def test_sqlite_url(self, tmp_path):
        storage = create_storage(f"sqlite:///{tmp_path}/somiti.db")
        assert isinstance(storage, SQLiteStorage)
        storage.close()

    def test_unsupported_url(self):
        with pytest.raises(ValueError):
            create_storage("postgresql://localhost/somiti")
