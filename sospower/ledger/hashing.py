"""Content hashing for persisted snapshots.

The snapshot manifest records a SHA256 of the canonical balance section.
On load the hash is recomputed so a truncated or hand-edited file is caught
before it is trusted as authoritative.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from .models import BalanceMapping


def compute_hash(data: Any) -> str:
    """SHA256 hex digest of canonical JSON (sorted keys, compact)."""
    raw = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(raw.encode()).hexdigest()


def balance_rows(balances: BalanceMapping) -> list[list[str]]:
    """Canonical [account, decimal balance] rows sorted by account."""
    return [[account, str(balances[account])] for account in sorted(balances)]


def compute_section_hash(data: Any) -> str:
    """Hash a data section: a BalanceMapping, row list, or pydantic model."""
    if hasattr(data, "model_dump"):
        as_dict = data.model_dump(mode="json")
    elif isinstance(data, dict):
        as_dict = {"items": balance_rows(data)}
    elif isinstance(data, list):
        as_dict = {"items": data}
    else:
        as_dict = {"value": data}

    return compute_hash(as_dict)


__all__ = ["balance_rows", "compute_hash", "compute_section_hash"]
