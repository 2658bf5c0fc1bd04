import pytest
from factories import FakeClock

from db import MemoryBlobStore
from remote.memory import InMemoryExpenseRepository
from replica import LocalReplicaStore
from sync.orchestrator import SyncOrchestrator
from tracker import ExpenseTracker


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def blob_store():
    return MemoryBlobStore()


@pytest.fixture
async def store(blob_store):
    replica = LocalReplicaStore(blob_store)
    await replica.load()
    return replica


@pytest.fixture
def remote(clock):
    return InMemoryExpenseRepository(clock=clock)


@pytest.fixture
async def orchestrator(store, remote, clock):
    orch = SyncOrchestrator(store, remote, interval=3600, timeout=1.0, clock=clock)
    yield orch
    await orch.stop()


@pytest.fixture
def tracker(store, orchestrator):
    """Tracker that starts offline, so mutations don't schedule background syncs."""
    orchestrator.online = False
    return ExpenseTracker(store, orchestrator)
