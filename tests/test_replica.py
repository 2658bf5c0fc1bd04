import json
from datetime import date
from decimal import Decimal

import pytest
from factories import at, make_expense

from constants import EXPENSES_KEY, WATERMARK_KEY
from db import Database, MemoryBlobStore
from models import Assigned, Category, Expense, to_document
from replica import LocalReplicaStore, ReplicaWriteError


class FailingBlobStore(MemoryBlobStore):
    fail_writes = False

    async def set(self, key, value):
        if self.fail_writes:
            raise OSError("disk full")
        await super().set(key, value)


def new_expense(description="coffee"):
    return Expense.create(Decimal("3.20"), Category.FOOD, description, date(2026, 1, 1), now=at(0))


async def test_load_without_state_is_empty(store):
    assert store.records() == []
    assert await store.load_watermark() is None


def document(**overrides):
    """A persisted replica holding one synced record, with fields replaced."""
    return json.dumps([dict(to_document(make_expense("a", updated=10)), **overrides)])


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "{}",
        '[{"id": 1}]',
        '[{"amount": "1"}]',
        document(createdAt=1767268800000, updatedAt=1767268800000),
        document(createdAt=None),
        document(updatedAt=None),
        document(amount="twelve"),
        document(synced="maybe"),
        document(deleted=None),
        document(id={"kind": "assigned", "value": None}),
    ],
)
async def test_corrupt_state_loads_as_empty(raw):
    store = LocalReplicaStore(MemoryBlobStore({EXPENSES_KEY: raw}))

    assert await store.load() == []


async def test_string_flags_are_read_as_booleans():
    store = LocalReplicaStore(MemoryBlobStore({EXPENSES_KEY: document(synced="false", deleted="false")}))

    (record,) = await store.load()

    assert record.synced is False
    assert record.deleted is False


async def test_unreadable_watermark_is_ignored():
    store = LocalReplicaStore(MemoryBlobStore({WATERMARK_KEY: "yesterday-ish"}))

    assert await store.load_watermark() is None


async def test_records_survive_a_reload(blob_store, store):
    inserted = await store.insert(new_expense())
    await store.save_watermark(at(60))

    reloaded = LocalReplicaStore(blob_store)

    assert await reloaded.load() == [inserted]
    assert await reloaded.load_watermark() == at(60)


async def test_records_survive_a_reload_from_sqlite(tmp_path):
    database = Database(str(tmp_path / "replica.db"))
    store = LocalReplicaStore(database)
    await store.load()
    inserted = await store.insert(new_expense())
    await database.close()

    reopened = Database(str(tmp_path / "replica.db"))
    try:
        assert await LocalReplicaStore(reopened).load() == [inserted]
    finally:
        await reopened.close()


async def test_insert_marks_record_unsynced_and_rejects_duplicates(store):
    expense = new_expense()

    record = await store.insert(expense)

    assert not record.synced
    assert record.updated_at > expense.updated_at
    with pytest.raises(ValueError):
        await store.insert(expense)


async def test_update_bumps_timestamp_and_clears_synced(store):
    await store.save([make_expense("a", updated=10)])

    record = await store.update("a", description="dinner")

    assert record.description == "dinner"
    assert record.updated_at > at(10)
    assert not record.synced
    assert store.get("a") == record


async def test_update_of_missing_or_deleted_record_returns_none(store):
    await store.save([make_expense("gone", deleted=True)])

    assert await store.update("nope", description="x") is None
    assert await store.update("gone", description="x") is None


async def test_delete_of_synced_record_leaves_a_tombstone(store):
    await store.save([make_expense("a", updated=10)])

    assert await store.mark_deleted("a")

    tombstone = store.get("a")
    assert tombstone.deleted
    assert not tombstone.synced
    assert tombstone.updated_at > at(10)
    assert store.visible() == []
    assert store.pending() == [tombstone]


async def test_delete_of_never_synced_record_purges_it(store):
    record = await store.insert(new_expense())

    assert await store.mark_deleted(record.key)

    assert store.records() == []


async def test_delete_of_unknown_record_returns_false(store):
    assert not await store.mark_deleted("missing")


async def test_failed_write_raises_and_keeps_previous_state():
    blobs = FailingBlobStore()
    store = LocalReplicaStore(blobs)
    await store.load()
    await store.save([make_expense("a", updated=10)])

    blobs.fail_writes = True
    with pytest.raises(ReplicaWriteError):
        await store.update("a", description="dinner")

    assert store.get("a").description == "lunch"


async def test_snapshot_marks_provisional_records_as_offered(store):
    record = await store.insert(new_expense())

    await store.snapshot()
    await store.mark_deleted(record.key)

    # Offered to the server, so the deletion has to be pushed as well
    assert store.get(record.key).deleted


async def test_commit_keeps_changes_made_after_the_snapshot(store):
    await store.save([make_expense("a", updated=10), make_expense("b", updated=10)])
    snapshot = await store.snapshot()
    edited = await store.update("a", description="edited during sync")
    added = await store.insert(new_expense("added during sync"))

    reconciled = [make_expense("a", updated=5, description="from server"), make_expense("b", updated=20)]
    assert await store.commit(reconciled, snapshot)

    assert store.get("a") == edited
    assert store.get(added.key) == added
    assert store.get("b").updated_at == at(20)


async def test_commit_moves_in_flight_edit_onto_the_server_identity(store):
    record = await store.insert(new_expense())
    snapshot = await store.snapshot()
    edited = await store.update(record.key, description="renamed")

    server_copy = make_expense("srv1", updated=0, origin=record.origin, description="coffee")
    assert await store.commit([server_copy], snapshot)

    (result,) = store.records()
    assert result.id == Assigned("srv1")
    assert result.description == "renamed"
    assert not result.synced
    assert store.get(record.key) == result


async def test_failed_commit_leaves_replica_unchanged():
    blobs = FailingBlobStore()
    store = LocalReplicaStore(blobs)
    await store.load()
    await store.save([make_expense("a", updated=10)])
    snapshot = await store.snapshot()

    blobs.fail_writes = True
    assert not await store.commit([make_expense("a", updated=20, description="new")], snapshot)

    assert store.get("a").description == "lunch"
