import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from config import SYNC_INTERVAL_SECONDS, SYNC_TIMEOUT_SECONDS
from models import Expense
from remote.base import RemoteRepository
from replica import LocalReplicaStore
from sync.merge import index_remote, reconcile
from utils.date_utils import utc_now
from utils.logging import logger


@dataclass
class SyncResult:
    """Outcome of one synchronization cycle."""

    success: bool
    pushed: int = 0
    pulled: int = 0
    error: str | None = None


class SyncOrchestrator:
    """Decides when to synchronize and runs one cycle at a time.

    Connectivity is inferred from the outcome of sync calls: a failed push or
    pull flips ``online`` to False, the next successful cycle flips it back.

    Usage:
        orchestrator = SyncOrchestrator(store, remote)
        await orchestrator.start()
        ...
        await orchestrator.stop()
    """

    def __init__(
        self,
        store: LocalReplicaStore,
        remote: RemoteRepository,
        interval: float = SYNC_INTERVAL_SECONDS,
        timeout: float = SYNC_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._remote = remote
        self.interval = interval
        self.timeout = timeout
        self._clock = clock

        self.online = True
        self.last_synced: datetime | None = None
        self.last_error: str | None = None

        self._lock = asyncio.Lock()
        self._periodic_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    @property
    def remote(self) -> RemoteRepository:
        return self._remote

    # Lifecycle

    async def start(self) -> SyncResult:
        """Restore the watermark, run the initial sync and start the interval timer."""
        self.last_synced = await self._store.load_watermark()
        logger.info(f"Starting sync orchestrator, last synced: {self.last_synced or 'never'}")
        result = await self.synchronize()
        if self._periodic_task is None:
            self._periodic_task = asyncio.create_task(self._run_periodic())
        return result

    async def stop(self) -> None:
        """Cancel the interval timer and any sync still running."""
        tasks = list(self._background)
        if self._periodic_task is not None:
            tasks.append(self._periodic_task)
            self._periodic_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._background.clear()
        logger.info("Sync orchestrator stopped")

    async def _run_periodic(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            logger.debug("Periodic sync triggered")
            await self.synchronize()

    # Triggers

    def request_sync(self) -> asyncio.Task | None:
        """Schedule a sync after a local mutation. Does nothing while offline."""
        if not self.online:
            logger.debug("Offline, local change queued for the next sync")
            return None
        task = asyncio.create_task(self.synchronize())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def set_online(self, online: bool) -> asyncio.Task | None:
        """Record a connectivity change reported by the host; recovery triggers a sync."""
        was_online = self.online
        self.online = online
        if online and not was_online:
            logger.info("Connectivity restored, scheduling sync")
            return self.request_sync()
        return None

    # The cycle

    async def synchronize(self) -> SyncResult:
        """Run one sync cycle. Calls made while a cycle is running wait for it to finish."""
        if self._lock.locked():
            logger.debug("Sync already in progress, queued")
        async with self._lock:
            return await self._run_cycle()

    async def _run_cycle(self) -> SyncResult:
        started = self._clock()
        snapshot = await self._store.snapshot()
        unsynced = [record for record in snapshot if not record.synced]

        try:
            echoed: list[Expense] = []
            if unsynced:
                logger.info(f"Pushing {len(unsynced)} unsynced expenses")
                echoed = await asyncio.wait_for(self._remote.push(unsynced), self.timeout)
            pulled = await asyncio.wait_for(self._remote.fetch(self.last_synced), self.timeout)
        except asyncio.TimeoutError:
            return self._fail(f"Server did not respond within {self.timeout:g}s")
        except Exception as e:
            return self._fail(f"Sync failed: {e}")

        # Echoed records are server state as well; the newest copy of each wins
        server_records = list(index_remote([*echoed, *pulled]).values())
        reconciled = reconcile(snapshot, server_records)

        if not await self._store.commit(reconciled, snapshot):
            # Nothing was applied; the next cycle starts from the same local state
            self.last_error = "Could not save synchronized expenses on this device"
            logger.error(self.last_error)
            return SyncResult(False, error=self.last_error)

        await self._store.save_watermark(started)
        self.last_synced = started
        self.online = True
        self.last_error = None
        logger.info(f"Sync complete: pushed {len(unsynced)}, pulled {len(pulled)}")
        return SyncResult(True, pushed=len(unsynced), pulled=len(pulled))

    def _fail(self, message: str) -> SyncResult:
        logger.warning(f"{message}; working offline")
        self.online = False
        self.last_error = message
        return SyncResult(False, error=message)
