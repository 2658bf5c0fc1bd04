from sync.merge import reconcile
from sync.orchestrator import SyncOrchestrator, SyncResult

__all__ = ["SyncOrchestrator", "SyncResult", "reconcile"]
