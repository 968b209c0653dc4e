"""Pydantic models for balance replay, snapshots and SOS power scoring.

Three groups:
- Chain inputs: RawLog (as returned by eth_getLogs) and LedgerEvent (decoded)
- Snapshots: SnapshotKey + SnapshotManifest describing a persisted BalanceMapping
- Scoring: SourceSpec, PoolRatios, CompositeRecord, PercentileResult
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Schema version - bump on breaking changes to the snapshot format
# ---------------------------------------------------------------------------

SNAPSHOT_SCHEMA_VERSION = 1

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# account (lower-cased 0x address) -> signed integer balance
BalanceMapping = Dict[str, int]


def normalize_address(address: str) -> str:
    """Lower-case a 0x address; rejects anything that is not 20 bytes."""
    a = str(address).strip().lower()
    if not a.startswith("0x") or len(a) != 42:
        raise ValueError(f"invalid address: {address}")
    return a


def _parse_quantity(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.startswith("0x"):
        return int(value, 16)
    return int(value)


# ---------------------------------------------------------------------------
# Chain inputs
# ---------------------------------------------------------------------------


class RawLog(BaseModel):
    """A single log record as returned by eth_getLogs."""

    address: str
    topics: list[str] = Field(default_factory=list)
    data: str = "0x"
    block_number: int
    log_index: int
    transaction_hash: str = ""

    @field_validator("address")
    @classmethod
    def _lower_address(cls, v: str) -> str:
        return normalize_address(v)

    @field_validator("topics")
    @classmethod
    def _lower_topics(cls, v: list[str]) -> list[str]:
        return [t.lower() for t in v]

    @classmethod
    def from_rpc(cls, log: dict[str, Any]) -> RawLog:
        """Build from a JSON-RPC log object (hex quantities, camelCase keys)."""
        return cls(
            address=log["address"],
            topics=list(log.get("topics") or []),
            data=log.get("data") or "0x",
            block_number=_parse_quantity(log["blockNumber"]),
            log_index=_parse_quantity(log["logIndex"]),
            transaction_hash=log.get("transactionHash") or "",
        )

    @property
    def position(self) -> tuple[int, int]:
        return (self.block_number, self.log_index)


class EventKind(str, Enum):
    """Event shapes that affect a ledger."""

    TRANSFER = "Transfer"
    DEPOSIT = "Deposit"
    WITHDRAW = "Withdraw"


class LedgerEvent(BaseModel):
    """A decoded log at (block_number, log_index).

    Transfer uses sender/recipient/value. Deposit and Withdraw use
    user/pid/value/recipient, where recipient is the event's ``to``.
    """

    kind: EventKind
    block_number: int
    log_index: int
    value: int = Field(ge=0)
    sender: str | None = None
    recipient: str | None = None
    user: str | None = None
    pid: int | None = None

    @property
    def position(self) -> tuple[int, int]:
        return (self.block_number, self.log_index)


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


class SnapshotKey(BaseModel):
    """Identifies one persisted BalanceMapping."""

    model_config = {"frozen": True}

    source: str
    end_block: int = Field(ge=0)

    @field_validator("source")
    @classmethod
    def _lower_source(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def snapshot_id(self) -> str:
        return f"{self.source}-{self.end_block}"


class SnapshotManifest(BaseModel):
    """Header written next to each snapshot's balances."""

    schema_version: int = SNAPSHOT_SCHEMA_VERSION
    source: str
    end_block: int
    genesis_block: int | None = None
    accounts: int
    content_hash: str = Field(description="SHA256 hex digest of the balance section")
    created_at: datetime


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


class SourceRole(str, Enum):
    """How a source's balances feed into SOS power."""

    PRIMARY = "primary"
    ESCROW = "escrow"
    POOL_SHARE = "pool_share"
    POOL_FARM = "pool_farm"


class SourceSpec(BaseModel):
    """One independently replayed token or staking program."""

    name: str
    role: SourceRole
    address: str
    genesis_block: int = Field(ge=0)
    batch_size: int = Field(ge=1)
    pool_id: int | None = None

    @field_validator("address")
    @classmethod
    def _lower_address(cls, v: str) -> str:
        return normalize_address(v)

    @property
    def source_id(self) -> str:
        return self.address


class PoolRatios(BaseModel):
    """Reserve and supply constants read at the target block."""

    escrow_pool_reserve: int = Field(ge=0)
    escrow_total_supply: int = Field(ge=0)
    pool_token_reserve: int = Field(ge=0)
    pool_total_supply: int = Field(ge=0)


class CompositeRecord(BaseModel):
    """Per-account raw balances, normalized contributions and SOS power."""

    account: str
    sos_balance: int = 0
    ve_sos_balance: int = 0
    slp_balance: int = 0
    normalized_sos_balance: int = 0
    normalized_ve_sos_balance: int = 0
    normalized_slp_balance: int = 0
    sos_power: int = 0

    def derive_power(self) -> None:
        """Recompute sos_power from the normalized contributions."""
        self.sos_power = (
            self.normalized_sos_balance
            + self.normalized_ve_sos_balance
            + self.normalized_slp_balance
        )


class PercentileResult(BaseModel):
    """The record sitting at a requested percentile."""

    percentile: float
    index: int
    record: CompositeRecord


__all__ = [
    "SNAPSHOT_SCHEMA_VERSION",
    "ZERO_ADDRESS",
    "BalanceMapping",
    "CompositeRecord",
    "EventKind",
    "LedgerEvent",
    "PercentileResult",
    "PoolRatios",
    "RawLog",
    "SnapshotKey",
    "SnapshotManifest",
    "SourceRole",
    "SourceSpec",
    "normalize_address",
]
