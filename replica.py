"""Local replica of the expense set.

The store is the only owner of the device's records. Every mutation is
applied in memory and persisted before the call returns; everything handed
out is a copy, so callers never hold a reference to the live mapping.
"""

import asyncio
from datetime import datetime
from typing import Any

from constants import EXPENSES_KEY, WATERMARK_KEY
from models import Expense, dump_document, load_document
from utils.date_utils import format_timestamp, parse_timestamp
from utils.logging import logger


class ReplicaWriteError(RuntimeError):
    """Raised when a local mutation could not be persisted."""


class LocalReplicaStore:
    def __init__(self, blob_store, key: str = EXPENSES_KEY, watermark_key: str = WATERMARK_KEY):
        """
        Args:
            blob_store: Object with async get(key) and set(key, value), e.g. db.Database
            key: Blob key holding the expense document
            watermark_key: Blob key holding the last successful sync time
        """
        self._blobs = blob_store
        self._key = key
        self._watermark_key = watermark_key
        self._records: dict[str, Expense] = {}
        self._lock = asyncio.Lock()
        # Tokens of provisional records already handed to a sync cycle. The server
        # may hold a copy of these, so deleting one must leave a tombstone.
        self._attempted: set[str] = set()

    # Loading and saving

    async def load(self) -> list[Expense]:
        """Load the persisted replica. Missing or corrupt state yields an empty set."""
        async with self._lock:
            try:
                raw = await self._blobs.get(self._key)
            except Exception as e:
                logger.error(f"Failed to read local expenses, starting empty: {e}")
                raw = None

            records: list[Expense] = []
            if raw:
                try:
                    records = load_document(raw)
                except ValueError as e:
                    logger.error(f"Discarding corrupt local expenses: {e}")

            self._records = {}
            for record in records:
                if record.key in self._records:
                    logger.warning(f"Duplicate identity {record.key} in local state, keeping the last one")
                self._records[record.key] = record

            logger.info(f"Loaded {len(self._records)} local expenses")
            return list(self._records.values())

    async def save(self, records: list[Expense]) -> bool:
        """Replace the replica contents and persist them."""
        async with self._lock:
            previous = self._records
            self._records = {record.key: record for record in records}
            if await self._persist():
                return True
            self._records = previous
            return False

    async def _persist(self) -> bool:
        try:
            await self._blobs.set(self._key, dump_document(list(self._records.values())))
            return True
        except Exception as e:
            logger.error(f"Failed to persist local expenses: {e}")
            return False

    async def _apply(self, records: dict[str, Expense]) -> None:
        """Swap in a new mapping and persist it, restoring the old one on failure."""
        previous = self._records
        self._records = records
        if not await self._persist():
            self._records = previous
            raise ReplicaWriteError("Could not save the change on this device")

    # Read access

    def records(self) -> list[Expense]:
        """All records, tombstones and unsynced ones included."""
        return list(self._records.values())

    def visible(self) -> list[Expense]:
        return [record for record in self._records.values() if record.is_visible]

    def pending(self) -> list[Expense]:
        return [record for record in self._records.values() if not record.synced]

    def get(self, key: str) -> Expense | None:
        return self._find(key)

    def _find(self, key: str) -> Expense | None:
        # A record may be looked up by the provisional token it was created under
        # even after the server assigned its permanent identity.
        record = self._records.get(key)
        if record is not None:
            return record
        for candidate in self._records.values():
            if candidate.origin == key:
                return candidate
        return None

    # Mutations

    async def insert(self, expense: Expense) -> Expense:
        async with self._lock:
            if expense.key in self._records:
                raise ValueError(f"Expense {expense.key} already exists")
            record = expense.touch()
            records = dict(self._records)
            records[record.key] = record
            await self._apply(records)
            logger.info(f"Inserted expense {record.key}")
            return record

    async def update(self, key: str, **changes: Any) -> Expense | None:
        """Edit fields of a visible record. Returns None when there is no such record."""
        async with self._lock:
            current = self._find(key)
            if current is None or current.deleted:
                logger.warning(f"Cannot update expense {key}: not found")
                return None
            record = current.touch(**changes)
            records = dict(self._records)
            records[record.key] = record
            await self._apply(records)
            logger.info(f"Updated expense {record.key}")
            return record

    async def mark_deleted(self, key: str) -> bool:
        """Tombstone a record.

        A provisional record that no sync cycle has picked up yet has no server
        copy, so it is removed outright instead of being tombstoned.
        """
        async with self._lock:
            current = self._find(key)
            if current is None:
                logger.warning(f"Cannot delete expense {key}: not found")
                return False
            if current.deleted:
                return True

            records = dict(self._records)
            if current.is_provisional and current.origin not in self._attempted:
                del records[current.key]
                await self._apply(records)
                logger.info(f"Purged never-synced expense {current.key}")
                return True

            record = current.touch(deleted=True)
            records[record.key] = record
            await self._apply(records)
            logger.info(f"Tombstoned expense {record.key}")
            return True

    # Sync cycle support

    async def snapshot(self) -> list[Expense]:
        """Capture the local set for a sync cycle.

        Provisional tombstones that were never offered to the server are purged
        first, they must never reach it.
        """
        async with self._lock:
            stale = {
                key for key, record in self._records.items()
                if record.is_provisional and record.deleted and record.origin not in self._attempted
            }
            if stale:
                records = {k: r for k, r in self._records.items() if k not in stale}
                try:
                    await self._apply(records)
                    logger.info(f"Purged {len(stale)} never-synced tombstones")
                except ReplicaWriteError:
                    logger.warning("Could not purge never-synced tombstones, skipping them this cycle")

            records = [record for record in self._records.values() if record.key not in stale]
            self._attempted |= {
                record.origin for record in records
                if record.is_provisional and record.origin is not None
            }
            return records

    async def commit(self, reconciled: list[Expense], snapshot: list[Expense]) -> bool:
        """Replace the replica with a merge result computed from snapshot.

        Records mutated since the snapshot was taken win over the merge result
        and stay unsynced for the next cycle. A provisional record that the merge
        resolved to a server identity keeps that identity.
        """
        async with self._lock:
            try:
                base = {record.key: record for record in snapshot}
                removed = base.keys() - self._records.keys()
                changed = [
                    record for record in self._records.values()
                    if base.get(record.key) != record
                ]

                result: dict[str, Expense] = {}
                for record in reconciled:
                    if record.key in removed or (record.origin and record.origin in removed):
                        continue
                    result[record.key] = record

                for record in changed:
                    match = result.pop(record.key, None)
                    if match is None and record.origin:
                        match_key = next(
                            (k for k, r in result.items() if r.origin == record.origin), None
                        )
                        if match_key is not None:
                            match = result.pop(match_key)
                    if match is not None and match.server_id and record.is_provisional:
                        record = record.with_server_id(match.server_id)
                    result[record.key] = record

                if changed:
                    logger.info(f"Kept {len(changed)} local changes made during sync")

                previous = self._records
                self._records = result
                if not await self._persist():
                    self._records = previous
                    return False
                return True
            finally:
                self._attempted = {
                    record.origin for record in self._records.values()
                    if record.is_provisional and record.origin in self._attempted
                }

    # Watermark

    async def load_watermark(self) -> datetime | None:
        try:
            raw = await self._blobs.get(self._watermark_key)
            return parse_timestamp(raw) if raw else None
        except Exception as e:
            logger.error(f"Discarding unreadable sync watermark: {e}")
            return None

    async def save_watermark(self, value: datetime) -> bool:
        try:
            await self._blobs.set(self._watermark_key, format_timestamp(value))
            return True
        except Exception as e:
            logger.error(f"Failed to persist sync watermark: {e}")
            return False
