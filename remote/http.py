import asyncio
from datetime import datetime
from typing import Any

import requests

from config import API_URL, SYNC_TIMEOUT_SECONDS
from models import Expense, from_wire, to_wire
from remote.base import RemoteError, RemoteRepository
from utils.date_utils import format_timestamp
from utils.logging import logger


class HttpExpenseRepository(RemoteRepository):
    """Client for the expense server's REST API.

    requests is blocking, so every call runs in a worker thread to keep the
    event loop free while waiting on the network.
    """

    def __init__(
        self,
        base_url: str = API_URL,
        timeout: float = SYNC_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response
        except requests.RequestException as e:
            logger.error(f"API Error - {method} {path}: {e}")
            raise RemoteError(f"{method} {path} failed: {e}") from e

    @staticmethod
    def _parse_expenses(response: requests.Response) -> list[Expense]:
        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON from expense server: {e}")
            raise RemoteError("Server returned invalid JSON") from e

        if not isinstance(data, list):
            logger.error(f"Expected a list of expenses, got {type(data).__name__}")
            raise RemoteError("Server returned an unexpected payload")

        try:
            return [from_wire(item) for item in data]
        except (KeyError, TypeError, AttributeError, ValueError, ArithmeticError) as e:
            logger.error(f"Malformed expense from server: {e!r}")
            raise RemoteError("Server returned a malformed expense") from e

    async def fetch(self, since: datetime | None = None) -> list[Expense]:
        params = {"since": format_timestamp(since)} if since else None
        logger.debug(f"Fetching expenses since {params['since'] if params else 'the beginning'}")
        response = await asyncio.to_thread(self._request, "GET", "/expenses", params=params)
        expenses = self._parse_expenses(response)
        logger.info(f"Fetched {len(expenses)} expenses from server")
        return expenses

    async def push(self, batch: list[Expense]) -> list[Expense]:
        payload = {"expenses": [to_wire(expense) for expense in batch]}
        logger.debug(f"Pushing {len(batch)} expenses")
        response = await asyncio.to_thread(self._request, "POST", "/expenses/sync", json=payload)
        return self._parse_expenses(response)

    async def delete(self, server_id: str) -> None:
        logger.debug(f"Deleting expense {server_id} on server")
        await asyncio.to_thread(self._request, "DELETE", f"/expenses/{server_id}")

    async def export_csv(self) -> str:
        """Server-side CSV export of every non-deleted expense."""
        response = await asyncio.to_thread(self._request, "GET", "/expenses/export")
        return response.text
