"""Filesystem-based SnapshotStore implementation.

Writes to a local directory tree:
  {data_dir}/snapshots/{source}/{end_block}/manifest.json
  {data_dir}/snapshots/{source}/{end_block}/balances.json.gz

Balances are stored as [account, decimal string] rows so integers keep
full precision. Snapshots are immutable: there is no retention pruning and
no merging across end blocks.
"""

from __future__ import annotations

import gzip
import json
import os
from datetime import datetime, timezone
from pathlib import Path

import bittensor as bt

from sospower.ledger.errors import SnapshotIntegrityError
from sospower.ledger.hashing import balance_rows, compute_section_hash
from sospower.ledger.models import BalanceMapping, SnapshotKey, SnapshotManifest

MANIFEST_FILE = "manifest.json"
BALANCES_FILE = "balances.json.gz"


def _atomic_write(path: Path, raw: bytes, compress: bool = False) -> None:
    """Write to a sibling .tmp file, then rename over ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with (gzip.open(tmp, "wb") if compress else open(tmp, "wb")) as f:
        f.write(raw)
    os.replace(tmp, path)


def _write_balances(path: Path, rows: list[list[str]]) -> None:
    _atomic_write(path, json.dumps(rows, separators=(",", ":")).encode(), compress=True)


def _read_balances(path: Path) -> BalanceMapping:
    """Rows back to a BalanceMapping; decimal strings keep full precision."""
    with gzip.open(path, "rb") as f:
        rows = json.loads(f.read())
    return {account: int(value) for account, value in rows}


def _write_manifest(path: Path, manifest: SnapshotManifest) -> None:
    _atomic_write(path, manifest.model_dump_json(indent=2).encode())


def _read_manifest(path: Path) -> SnapshotManifest:
    return SnapshotManifest.model_validate_json(path.read_bytes())


class FilesystemStore:
    """Local filesystem SnapshotStore implementation."""

    def __init__(self, data_dir: str):
        self.base = Path(data_dir) / "snapshots"
        self.base.mkdir(parents=True, exist_ok=True)

    def _snapshot_dir(self, key: SnapshotKey) -> Path:
        return self.base / key.source / str(key.end_block)

    async def exists(self, key: SnapshotKey) -> bool:
        # The manifest is written last, so its presence marks a complete snapshot
        return (self._snapshot_dir(key) / MANIFEST_FILE).exists()

    async def save(
        self, key: SnapshotKey, balances: BalanceMapping, genesis_block: int | None = None,
    ) -> str:
        """Write a snapshot to disk. Returns the snapshot ID."""
        snap_dir = self._snapshot_dir(key)
        rows = balance_rows(balances)

        _write_balances(snap_dir / BALANCES_FILE, rows)

        manifest = SnapshotManifest(
            source=key.source,
            end_block=key.end_block,
            genesis_block=genesis_block,
            accounts=len(rows),
            content_hash=compute_section_hash(rows),
            created_at=datetime.now(timezone.utc),
        )
        _write_manifest(snap_dir / MANIFEST_FILE, manifest)

        bt.logging.info({
            "snapshot_store": {
                "event": "saved",
                "snapshot": key.snapshot_id,
                "accounts": manifest.accounts,
            }
        })
        return key.snapshot_id

    async def load(self, key: SnapshotKey) -> BalanceMapping | None:
        """Load a snapshot from disk, or None when it was never written."""
        snap_dir = self._snapshot_dir(key)
        manifest_path = snap_dir / MANIFEST_FILE
        if not manifest_path.exists():
            return None

        manifest = _read_manifest(manifest_path)
        if manifest.source != key.source or manifest.end_block != key.end_block:
            raise SnapshotIntegrityError(
                f"manifest at {manifest_path} is for {manifest.source}-{manifest.end_block}"
            )

        balances_path = snap_dir / BALANCES_FILE
        if not balances_path.exists():
            raise SnapshotIntegrityError(f"snapshot {key.snapshot_id} has a manifest but no balances")

        balances = _read_balances(balances_path)

        if len(balances) != manifest.accounts or compute_section_hash(balances) != manifest.content_hash:
            raise SnapshotIntegrityError(f"snapshot {key.snapshot_id} does not match its content hash")

        bt.logging.debug({"snapshot_store": {"event": "loaded", "snapshot": key.snapshot_id, "accounts": len(balances)}})
        return balances

    async def list_end_blocks(self, source: str) -> list[int]:
        """End blocks that have a complete snapshot for ``source``."""
        source_dir = self.base / source.lower()
        if not source_dir.exists():
            return []
        return sorted(
            int(d.name)
            for d in source_dir.iterdir()
            if d.is_dir() and d.name.isdigit() and (d / MANIFEST_FILE).exists()
        )


__all__ = ["FilesystemStore"]
