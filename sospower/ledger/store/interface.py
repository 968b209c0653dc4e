"""SnapshotStore protocol - pluggable persistence for replayed balances.

Implementations: FilesystemStore (gzip JSON on local disk).
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sospower.ledger.models import BalanceMapping, SnapshotKey


@runtime_checkable
class SnapshotStore(Protocol):
    """Abstract interface for reading/writing balance snapshots."""

    async def load(self, key: SnapshotKey) -> BalanceMapping | None:
        """Fetch the snapshot for exactly this key, or None if never saved."""
        ...

    async def save(
        self, key: SnapshotKey, balances: BalanceMapping, genesis_block: int | None = None,
    ) -> str:
        """Write a full snapshot. Returns the snapshot ID."""
        ...

    async def exists(self, key: SnapshotKey) -> bool:
        """Whether a snapshot has been written for this key."""
        ...


__all__ = ["SnapshotStore"]
