"""Runtime configuration for the SOS power tool.

Resolution order, lowest to highest: built-in defaults, CLI flags,
SOSPOWER_* environment variables (a .env file is loaded by the entrypoint).
"""

from __future__ import annotations

import argparse
import os
from typing import Any

import bittensor as bt
from pydantic import BaseModel, Field, field_validator

from sospower.ledger.models import SourceRole, SourceSpec, normalize_address
from sospower.ledger.percentiles import DEFAULT_PERCENTILES

SOS_ADDRESS = "0x3b484b82567a09e2588a13d54d032153f0c0aee0"
VESOS_ADDRESS = "0xedd27c961ce6f79afc16fd287d934ee31a90d7d1"
SLP_ADDRESS = "0xb84c45174bfc6b8f3eaecbae11dee63114f5c1b2"
MASTER_CHEF_V2_ADDRESS = "0xef0881ec094552b2e128cf945ef17a6752b4ec5d"

SOS_GENESIS_BLOCK = 13860522
VESOS_GENESIS_BLOCK = 13938731
SLP_GENESIS_BLOCK = 13864933

# MasterChefV2 pool id of the SOS/WETH SLP farm (0x2d)
SLP_FARM_POOL_ID = 45

ALCHEMY_MAINNET_URL = "https://eth-mainnet.alchemyapi.io/v2/{key}"

# Contracts holding SOS or SLP on behalf of users; never scored as accounts
DEFAULT_EXCLUDED_ACCOUNTS = frozenset({
    VESOS_ADDRESS,
    SLP_ADDRESS,
    MASTER_CHEF_V2_ADDRESS,
})


class PowerSettings(BaseModel):
    """Resolved settings for one run."""

    rpc_url: str = ""
    target_block: int | None = None
    data_dir: str = "data"
    farm_pool_id: int = SLP_FARM_POOL_ID
    excluded_accounts: list[str] = Field(default_factory=list, validate_default=True)
    percentiles: list[float] = Field(default_factory=lambda: list(DEFAULT_PERCENTILES))
    rpc_timeout: float = 30.0
    rpc_max_retries: int = 3

    sos_address: str = SOS_ADDRESS
    vesos_address: str = VESOS_ADDRESS
    slp_address: str = SLP_ADDRESS
    master_chef_address: str = MASTER_CHEF_V2_ADDRESS

    @field_validator("excluded_accounts")
    @classmethod
    def _lower_accounts(cls, v: list[str]) -> list[str]:
        """Normalize configured accounts and always add the default exclusions."""
        accounts = [normalize_address(a) for a in v]
        extra = sorted(DEFAULT_EXCLUDED_ACCOUNTS.difference(accounts))
        return list(dict.fromkeys(accounts)) + extra

    def sources(self) -> list[SourceSpec]:
        """The four replayed sources with their genesis blocks and batch sizes."""
        return [
            SourceSpec(name="sos", role=SourceRole.PRIMARY, address=self.sos_address,
                       genesis_block=SOS_GENESIS_BLOCK, batch_size=200),
            SourceSpec(name="vesos", role=SourceRole.ESCROW, address=self.vesos_address,
                       genesis_block=VESOS_GENESIS_BLOCK, batch_size=10000),
            SourceSpec(name="slp", role=SourceRole.POOL_SHARE, address=self.slp_address,
                       genesis_block=SLP_GENESIS_BLOCK, batch_size=10000),
            SourceSpec(name="slp_farm", role=SourceRole.POOL_FARM, address=self.master_chef_address,
                       genesis_block=SLP_GENESIS_BLOCK, batch_size=5000, pool_id=self.farm_pool_id),
        ]


def _split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def add_args(parser: argparse.ArgumentParser) -> None:
    """Adds the tool's arguments to the parser."""
    parser.add_argument("--rpc.url", type=str, default=None, help="Ethereum JSON-RPC endpoint.")
    parser.add_argument(
        "--target_block",
        type=int,
        default=None,
        help="Block to compute balances at (default: latest).",
    )
    parser.add_argument("--data_dir", type=str, default="data", help="Snapshot and report directory.")
    parser.add_argument(
        "--farm.pool_id",
        type=int,
        default=SLP_FARM_POOL_ID,
        help="MasterChefV2 pool id whose Deposit/Withdraw events are replayed.",
    )
    parser.add_argument(
        "--exclude",
        type=str,
        default="",
        help="Comma separated accounts left out of the report, on top of the veSOS, SLP and MasterChefV2 contracts.",
    )
    parser.add_argument(
        "--percentiles",
        type=str,
        default=",".join(str(p) for p in DEFAULT_PERCENTILES),
        help="Comma separated percentiles to log.",
    )
    parser.add_argument("--rpc.timeout", type=float, default=30.0, help="Per-request timeout in seconds.")
    parser.add_argument("--rpc.max_retries", type=int, default=3, help="Attempts per request on transient errors.")


def load_settings(args: Any = None, env: dict[str, str] | None = None) -> PowerSettings:
    """Merge CLI args and environment into PowerSettings.

    Environment variables have the highest priority.
    """
    env = dict(os.environ) if env is None else env
    args = args or argparse.Namespace()

    rpc_url = env.get("SOSPOWER_RPC_URL", getattr(args, "rpc.url", None) or "")
    if not rpc_url and env.get("ALCHEMY_KEY"):
        rpc_url = ALCHEMY_MAINNET_URL.format(key=env["ALCHEMY_KEY"])

    target = env.get("SOSPOWER_TARGET_BLOCK") or env.get("TARGET_BLOCK") or getattr(args, "target_block", None)
    target_block = int(target) if target not in (None, "") else None

    excluded = _split_list(env.get("SOSPOWER_EXCLUDED_ACCOUNTS", getattr(args, "exclude", "") or ""))
    percentiles_raw = env.get("SOSPOWER_PERCENTILES", getattr(args, "percentiles", None))
    percentiles = [float(p) for p in _split_list(percentiles_raw)] or list(DEFAULT_PERCENTILES)

    settings = PowerSettings(
        rpc_url=rpc_url,
        target_block=target_block,
        data_dir=env.get("SOSPOWER_DATA_DIR", getattr(args, "data_dir", None) or "data"),
        farm_pool_id=int(env.get("SOSPOWER_FARM_POOL_ID", getattr(args, "farm.pool_id", SLP_FARM_POOL_ID))),
        excluded_accounts=excluded,
        percentiles=percentiles,
        rpc_timeout=float(env.get("SOSPOWER_RPC_TIMEOUT", getattr(args, "rpc.timeout", 30.0))),
        rpc_max_retries=int(env.get("SOSPOWER_RPC_MAX_RETRIES", getattr(args, "rpc.max_retries", 3))),
    )

    bt.logging.debug({
        "power_config": {
            "target_block": settings.target_block,
            "data_dir": settings.data_dir,
            "farm_pool_id": settings.farm_pool_id,
            "excluded": len(settings.excluded_accounts),
        }
    })
    return settings


__all__ = ["DEFAULT_EXCLUDED_ACCOUNTS", "PowerSettings", "add_args", "load_settings"]
