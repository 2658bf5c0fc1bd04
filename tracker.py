"""The application boundary: validated user actions and the views built on them.

An ExpenseTracker owns the replica store and the sync orchestrator of one
device. Front ends hold a reference to it instead of sharing global state.
"""

import csv
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from io import StringIO

import config
from db import Database
from models import Category, Expense
from remote import HttpExpenseRepository, InMemoryExpenseRepository, RemoteError, RemoteRepository
from replica import LocalReplicaStore
from sync.orchestrator import SyncOrchestrator, SyncResult
from utils.logging import logger
from utils.validation import validate_amount, validate_category, validate_date, validate_description


@dataclass
class SyncStatus:
    online: bool
    syncing: bool
    last_synced: datetime | None
    pending: int
    last_error: str | None = None


def _checked(result: tuple[bool, object]):
    is_valid, value = result
    if not is_valid:
        raise ValueError(value)
    return value


class ExpenseTracker:
    def __init__(self, store: LocalReplicaStore, orchestrator: SyncOrchestrator, blob_store=None):
        self.store = store
        self.orchestrator = orchestrator
        self._blob_store = blob_store

    @classmethod
    def from_config(cls) -> "ExpenseTracker":
        """Wire up storage, server client and orchestrator from environment settings."""
        blob_store = Database(config.STORAGE_PATH)
        store = LocalReplicaStore(blob_store)
        if config.REMOTE_BACKEND == "memory":
            logger.warning("Using the in-memory expense server, data is not shared")
            remote: RemoteRepository = InMemoryExpenseRepository()
        else:
            remote = HttpExpenseRepository(config.API_URL, config.SYNC_TIMEOUT_SECONDS)
        orchestrator = SyncOrchestrator(
            store,
            remote,
            interval=config.SYNC_INTERVAL_SECONDS,
            timeout=config.SYNC_TIMEOUT_SECONDS,
        )
        return cls(store, orchestrator, blob_store)

    async def start(self) -> SyncResult:
        await self.store.load()
        return await self.orchestrator.start()

    async def stop(self) -> None:
        await self.orchestrator.stop()
        if self._blob_store is not None:
            await self._blob_store.close()

    # User actions

    async def add_expense(
        self,
        amount: str | Decimal | float,
        category: str | Category,
        description: str,
        spent_on: str | date | None = None,
    ) -> Expense:
        """Validate and record a new expense.

        Raises:
            ValueError: If any field is invalid
        """
        expense = Expense.create(
            amount=_checked(validate_amount(amount)),
            category=_checked(validate_category(category)),
            description=_checked(validate_description(description)),
            spent_on=_checked(validate_date(spent_on or date.today())),
        )
        record = await self.store.insert(expense)
        self.orchestrator.request_sync()
        return record

    async def edit_expense(
        self,
        key: str,
        amount: str | Decimal | float | None = None,
        category: str | Category | None = None,
        description: str | None = None,
        spent_on: str | date | None = None,
    ) -> Expense | None:
        """Change fields of an existing expense. Returns None if it does not exist."""
        changes = {}
        if amount is not None:
            changes["amount"] = _checked(validate_amount(amount))
        if category is not None:
            changes["category"] = _checked(validate_category(category))
        if description is not None:
            changes["description"] = _checked(validate_description(description))
        if spent_on is not None:
            changes["date"] = _checked(validate_date(spent_on))
        if not changes:
            return self.store.get(key)

        record = await self.store.update(key, **changes)
        if record is not None:
            self.orchestrator.request_sync()
        return record

    async def delete_expense(self, key: str) -> bool:
        deleted = await self.store.mark_deleted(key)
        if deleted:
            self.orchestrator.request_sync()
        return deleted

    async def sync_now(self) -> SyncResult:
        """User-requested sync; the result reports failure instead of raising."""
        return await self.orchestrator.synchronize()

    # Views, tombstones are never shown or counted

    def expenses(self) -> list[Expense]:
        return sorted(
            self.store.visible(),
            key=lambda e: (e.date, e.created_at),
            reverse=True,
        )

    def get(self, key: str) -> Expense | None:
        record = self.store.get(key)
        return record if record is not None and record.is_visible else None

    def total_by_category(self) -> dict[Category, Decimal]:
        totals: dict[Category, Decimal] = defaultdict(Decimal)
        for expense in self.store.visible():
            totals[expense.category] += expense.amount
        return dict(totals)

    def summary(self, top: int = 3) -> tuple[Decimal, list[tuple[Category, Decimal]]]:
        """Grand total and the categories with the highest totals."""
        totals = self.total_by_category()
        ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
        return sum(totals.values(), Decimal("0")), ranked[:top]

    def export_csv(self) -> str:
        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(["date", "description", "category", "amount"])
        for expense in self.expenses():
            writer.writerow(
                [expense.date.isoformat(), expense.description, expense.category.value, str(expense.amount)]
            )
        return output.getvalue()

    async def export(self) -> str:
        """CSV export, from the server when it is reachable and fully synced.

        Falls back to the local replica while offline or when the server
        export fails, so the user always gets a file.
        """
        if self.orchestrator.online:
            result = await self.sync_now()
            if result.success:
                try:
                    return await self.orchestrator.remote.export_csv()
                except RemoteError as e:
                    logger.warning(f"Server export failed, exporting local expenses: {e}")
        return self.export_csv()

    def status(self) -> SyncStatus:
        return SyncStatus(
            online=self.orchestrator.online,
            syncing=self.orchestrator.in_progress,
            last_synced=self.orchestrator.last_synced,
            pending=len(self.store.pending()),
            last_error=self.orchestrator.last_error,
        )
