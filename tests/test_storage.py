"""
Test suite for storage module

Tests basic operations and the atomic unit of work on both backends.
"""

import os
import tempfile
import threading
import pytest

from installment_engine.storage import InMemoryStorage, SQLiteStorage, create_storage


@pytest.fixture(params=["memory", "sqlite"])
def storage(request):
    if request.param == "memory":
        backend = InMemoryStorage()
        yield backend
        backend.close()
    else:
        with tempfile.TemporaryDirectory() as tmpdir:
            backend = SQLiteStorage(os.path.join(tmpdir, "test.db"))
            yield backend
            backend.close()


class TestStorageInterface:
    """Test basic storage operations"""

    def test_basic_operations(self, storage):
        """Test save, load, exists, find, count, delete"""
        storage.save("plans", "p1", {"id": "p1", "customer_id": "c1", "amount": "10.50"})
        storage.save("plans", "p2", {"id": "p2", "customer_id": "c2", "amount": "3.00"})

        assert storage.load("plans", "p1")["amount"] == "10.50"
        assert storage.exists("plans", "p2")
        assert storage.count("plans") == 2
        assert [r["id"] for r in storage.find("plans", {"customer_id": "c2"})] == ["p2"]
        assert storage.delete("plans", "p1")
        assert not storage.delete("plans", "p1")
        assert storage.load("plans", "p1") is None

    def test_load_all_in_insertion_order(self, storage):
        for i in range(5):
            storage.save("rows", f"r{i}", {"id": f"r{i}"})
        assert [r["id"] for r in storage.load_all("rows")] == ["r0", "r1", "r2", "r3", "r4"]

    def test_loaded_records_are_copies(self, storage):
        """Test mutation of a loaded record does not leak back"""
        storage.save("rows", "r1", {"id": "r1", "items": [1]})
        record = storage.load("rows", "r1")
        record["items"].append(2)
        assert storage.load("rows", "r1")["items"] == [1]

    def test_clear_table(self, storage):
        storage.save("rows", "r1", {"id": "r1"})
        storage.clear_table("rows")
        assert storage.count("rows") == 0


class TestAtomic:
    """Test the unit of work"""

    def test_commit(self, storage):
        with storage.atomic():
            storage.save("rows", "r1", {"id": "r1"})
            storage.save("rows", "r2", {"id": "r2"})
        assert storage.count("rows") == 2
        assert not storage.in_transaction

    def test_rollback_on_exception(self, storage):
        """Test every write in a failed block is discarded"""
        storage.save("rows", "keep", {"id": "keep", "v": 1})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("rows", "new", {"id": "new"})
                storage.save("rows", "keep", {"id": "keep", "v": 2})
                storage.delete("rows", "keep")
                raise RuntimeError("boom")

        assert storage.load("rows", "new") is None
        assert storage.load("rows", "keep") == {"id": "keep", "v": 1}

    def test_rollback_discards_new_table(self, storage):
        """Test a table first created inside a failed block"""
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("fresh", "r1", {"id": "r1"})
                raise RuntimeError("boom")

        assert storage.count("fresh") == 0
        storage.save("fresh", "r2", {"id": "r2"})
        assert storage.count("fresh") == 1

    def test_nested_blocks_join_outermost(self, storage):
        """Test an inner success is undone by an outer failure"""
        with pytest.raises(RuntimeError):
            with storage.atomic():
                with storage.atomic():
                    storage.save("rows", "inner", {"id": "inner"})
                assert storage.in_transaction
                raise RuntimeError("outer fails")

        assert storage.load("rows", "inner") is None


class TestSQLitePersistence:
    """Test data survives reopening"""

    def test_reopen(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "persist.db")
            first = SQLiteStorage(path)
            with first.atomic():
                first.save("rows", "r1", {"id": "r1", "amount": "1766.67"})
            first.close()

            second = SQLiteStorage(path)
            assert second.load("rows", "r1")["amount"] == "1766.67"
            second.close()

    def test_unit_of_work_holds_write_lock(self):
        """Test a second connection cannot write between a read and a write"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "shared.db")
            first = SQLiteStorage(path)
            second = SQLiteStorage(path)
            first.save("plans", "p1", {"id": "p1", "version": 1})

            def bump_from_second():
                with second.atomic():
                    record = second.load("plans", "p1")
                    record["version"] += 1
                    second.save("plans", "p1", record)

            with first.atomic():
                record = first.load("plans", "p1")
                thread = threading.Thread(target=bump_from_second)
                thread.start()
                thread.join(0.3)
                assert thread.is_alive()
                record["version"] += 1
                first.save("plans", "p1", record)
            thread.join(10)

            assert second.load("plans", "p1")["version"] == 3
            first.close()
            second.close()


class TestCreateStorage:
    def test_backends(self):
        assert isinstance(create_storage("memory", ""), InMemoryStorage)
        with pytest.raises(ValueError):
            create_storage("postgres", "")
