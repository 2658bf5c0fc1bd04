from abc import ABC, abstractmethod
from datetime import datetime

from models import Expense


class RemoteError(Exception):
    """The server could not be reached or rejected the request."""


class RemoteRepository(ABC):
    """Server-side record store as seen by the sync engine.

    Every call either succeeds with data or raises RemoteError; there is no
    partial-batch outcome.
    """

    @abstractmethod
    async def fetch(self, since: datetime | None = None) -> list[Expense]:
        """Records changed since ``since`` (all records when None), tombstones included."""

    @abstractmethod
    async def push(self, batch: list[Expense]) -> list[Expense]:
        """Upsert records by identity and return their authoritative post-write state.

        Records without a server identity are created and assigned one.
        """

    @abstractmethod
    async def delete(self, server_id: str) -> None:
        """Soft-delete a single record on the server."""

    @abstractmethod
    async def export_csv(self) -> str:
        """CSV (date, description, category, amount) of every non-deleted record, newest date first."""
