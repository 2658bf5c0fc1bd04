"""Reconciliation of the local replica with the server's record set.

Last-writer-wins on ``updated_at``. When both sides carry the same timestamp
the server copy is taken verbatim: the server is the tie-break authority.
"""

from collections.abc import Iterable
from dataclasses import replace

from models import Assigned, Expense
from utils.logging import logger


def _keep_newer(result: dict[str, Expense], record: Expense) -> None:
    existing = result.get(record.key)
    if existing is None or record.updated_at > existing.updated_at:
        result[record.key] = record


def index_remote(remote: Iterable[Expense]) -> dict[str, Expense]:
    """Index server records by server id, newest copy wins, all marked synced."""
    by_id: dict[str, Expense] = {}
    for record in remote:
        if record.server_id is None:
            logger.warning(f"Ignoring server record without a server identity: {record.key}")
            continue
        _keep_newer(by_id, record.as_synced())
    return by_id


def reconcile(local: Iterable[Expense], remote: Iterable[Expense]) -> list[Expense]:
    """Merge the local record set with records received from the server.

    Neither input is modified. The result holds one record per identity: local
    records in their original order followed by records only the server knows.

    Args:
        local: Every local record, tombstones and unsynced ones included
        remote: Records returned by the server, possibly only recent changes

    Returns:
        The reconciled record set
    """
    remote_by_id = index_remote(remote)
    # Server copies of records created on this device, found by their provisional token
    remote_by_origin = {
        record.origin: server_id
        for server_id, record in remote_by_id.items()
        if record.origin is not None
    }

    result: dict[str, Expense] = {}
    matched: set[str] = set()

    for record in local:
        server_id = record.server_id
        if server_id is None and record.origin is not None:
            server_id = remote_by_origin.get(record.origin)

        server_copy = remote_by_id.get(server_id) if server_id is not None else None
        if server_copy is None:
            # Local only, or no longer returned by the server: absence is not deletion
            _keep_newer(result, record)
            continue

        matched.add(server_id)
        if server_copy.updated_at >= record.updated_at:
            _keep_newer(result, server_copy)
        else:
            logger.debug(f"Local version of {server_id} is newer, keeping it for the next push")
            _keep_newer(result, replace(record, id=Assigned(server_id), synced=False))

    for server_id, record in remote_by_id.items():
        if server_id not in matched:
            _keep_newer(result, record)

    logger.debug(
        f"Reconciled {len(result)} records ({len(matched)} matched, "
        f"{len(remote_by_id) - len(matched)} new from server)"
    )
    return list(result.values())
