"""
Tests for the JSON file backend.
"""

import pytest

from passbook.associations import AssociationManager
from passbook.models.account import Account, StoreSnapshot
from passbook.services.storage import (
    CommitError,
    EntityStore,
    JsonFileRecordStorage,
    StorageError,
)


class TestJsonFileRecordStorage:
    """Tests for load/save on disk."""

    @pytest.mark.asyncio
    async def test_missing_file_loads_empty(self, tmp_path):
        storage = JsonFileRecordStorage(tmp_path / "records.json")
        snapshot = await storage.load()
        assert snapshot == StoreSnapshot()

    @pytest.mark.asyncio
    async def test_save_then_load(self, tmp_path):
        storage = JsonFileRecordStorage(tmp_path / "nested" / "records.json")
        account = Account(bank_name="Example Bank", branch_code="001")

        assert await storage.save(StoreSnapshot(accounts=[account])) is True
        loaded = await storage.load()

        assert loaded.accounts[0].id == account.id
        assert loaded.accounts[0].branch_code == "001"

    @pytest.mark.asyncio
    async def test_save_leaves_no_temp_file(self, tmp_path):
        path = tmp_path / "records.json"
        storage = JsonFileRecordStorage(path)

        await storage.save(StoreSnapshot())
        await storage.save(StoreSnapshot(accounts=[Account(bank_name="Bank")]))

        assert [p.name for p in tmp_path.iterdir()] == ["records.json"]

    @pytest.mark.asyncio
    async def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "records.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            await JsonFileRecordStorage(path).load()

    @pytest.mark.asyncio
    async def test_non_utf8_file_raises_storage_error(self, tmp_path):
        path = tmp_path / "records.json"
        path.write_bytes(b"\xff\xfe{")
        with pytest.raises(StorageError):
            await EntityStore(JsonFileRecordStorage(path)).load()

    @pytest.mark.asyncio
    async def test_unwritable_location_raises(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        storage = JsonFileRecordStorage(blocker / "records.json")
        with pytest.raises(StorageError):
            await storage.save(StoreSnapshot())


class TestStoreOnDisk:
    """The store persisting through the JSON backend."""

    @pytest.mark.asyncio
    async def test_relationships_survive_restart(self, tmp_path):
        path = tmp_path / "records.json"
        store = EntityStore(JsonFileRecordStorage(path))
        manager = AssociationManager(store)
        account = store.create_account("Bank", branch_code="001", account_number="1234567")
        tag = store.create_tag("Work", "#45B7D1")
        manager.add_tag(account, tag)
        await store.commit()

        reopened = EntityStore(JsonFileRecordStorage(path))
        await reopened.load()
        reopened_manager = AssociationManager(reopened)

        assert [t.name for t in reopened_manager.tags_for(account.id)] == ["Work"]
        assert reopened.require_tag(tag.id).association_ids == account.association_ids
        assert reopened_manager.verify_integrity() == []

    @pytest.mark.asyncio
    async def test_failed_save_keeps_previous_file(self, tmp_path):
        path = tmp_path / "records.json"
        store = EntityStore(JsonFileRecordStorage(path))
        store.create_account("Saved")
        await store.commit()
        before = path.read_text(encoding="utf-8")

        store.create_account("Unsaved")
        path.with_suffix(".json.tmp").mkdir()

        with pytest.raises(CommitError):
            await store.commit()

        assert path.read_text(encoding="utf-8") == before
        assert [a.bank_name for a in store.list_accounts()] == ["Saved"]
