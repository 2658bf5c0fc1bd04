import asyncio
import csv
import itertools
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from io import StringIO

from models import Assigned, Expense
from remote.base import RemoteError, RemoteRepository
from utils.date_utils import utc_now
from utils.logging import logger


class InMemoryExpenseRepository(RemoteRepository):
    """Server semantics kept in process memory.

    Writes are last-writer-wins on the client's ``updated_at``. Each stored
    record also gets a server-side change stamp which is what ``fetch(since)``
    filters on, so records edited offline long ago are still delivered once
    they reach the server. A record pushed again under the same provisional
    token updates the copy created the first time instead of duplicating it.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._records: dict[str, Expense] = {}
        self._changed_at: dict[str, datetime] = {}
        self._by_origin: dict[str, str] = {}
        self._ids = itertools.count(1)
        # Simulated outage and latency
        self.error: Exception | None = None
        self.delay: float = 0.0
        self.push_calls: list[list[Expense]] = []
        self.fetch_calls: list[datetime | None] = []

    async def _network(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    def _store(self, record: Expense) -> Expense:
        server_id = record.server_id
        self._records[server_id] = record
        self._changed_at[server_id] = self._clock()
        if record.origin:
            self._by_origin[record.origin] = server_id
        return record

    def seed(self, record: Expense) -> Expense:
        """Store a record as if another client had synced it."""
        if record.server_id is None:
            record = record.with_server_id(self._new_id())
        return self._store(record.as_synced())

    def get(self, server_id: str) -> Expense | None:
        return self._records.get(server_id)

    def records(self) -> list[Expense]:
        return list(self._records.values())

    def _new_id(self) -> str:
        return f"{next(self._ids):024x}"

    async def fetch(self, since: datetime | None = None) -> list[Expense]:
        self.fetch_calls.append(since)
        await self._network()
        return [
            record for server_id, record in self._records.items()
            if since is None or self._changed_at[server_id] >= since
        ]

    async def push(self, batch: list[Expense]) -> list[Expense]:
        self.push_calls.append(list(batch))
        await self._network()

        echoed = []
        for incoming in batch:
            server_id = incoming.server_id or self._by_origin.get(incoming.origin or "")
            existing = self._records.get(server_id) if server_id else None

            if existing is None:
                stored = self._store(
                    replace(incoming, id=Assigned(server_id or self._new_id()), synced=True)
                )
                logger.debug(f"Server created expense {stored.key}")
            elif incoming.updated_at > existing.updated_at:
                stored = self._store(
                    replace(
                        incoming,
                        id=Assigned(server_id),
                        origin=existing.origin or incoming.origin,
                        synced=True,
                    )
                )
                logger.debug(f"Server accepted newer version of {server_id}")
            else:
                stored = existing
            echoed.append(stored)
        return echoed

    async def delete(self, server_id: str) -> None:
        await self._network()
        existing = self._records.get(server_id)
        if existing is None:
            raise RemoteError(f"Expense {server_id} not found")
        self._store(existing.touch(now=self._clock(), deleted=True).as_synced())

    async def export_csv(self) -> str:
        await self._network()
        visible = sorted(
            (record for record in self._records.values() if not record.deleted),
            key=lambda record: record.date,
            reverse=True,
        )
        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(["date", "description", "category", "amount"])
        for record in visible:
            writer.writerow([record.date.isoformat(), record.description, record.category.value, str(record.amount)])
        return output.getvalue()
