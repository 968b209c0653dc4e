"""Slim ABI surface: event topics, function selectors and call encoding.

Only the shapes the power computation needs:
- ERC20 Transfer(address indexed from, address indexed to, uint256 value)
- MasterChefV2 Deposit/Withdraw(address indexed user, uint256 indexed pid,
  uint256 amount, address indexed to)
- uint256 views: totalSupply(), balanceOf(address), getSOSPool()
"""

from __future__ import annotations

from typing import Sequence

from eth_abi import decode, encode
from web3 import Web3

from sospower.ledger.models import SourceRole, SourceSpec

TRANSFER_SIGNATURE = "Transfer(address,address,uint256)"
DEPOSIT_SIGNATURE = "Deposit(address,uint256,uint256,address)"
WITHDRAW_SIGNATURE = "Withdraw(address,uint256,uint256,address)"


def event_topic(signature: str) -> str:
    """keccak256 of an event signature as a 0x hex string."""
    return Web3.to_hex(Web3.keccak(text=signature)).lower()


def function_selector(signature: str) -> str:
    """First four bytes of keccak256 of a function signature."""
    return Web3.to_hex(Web3.keccak(text=signature)[:4]).lower()


TRANSFER_TOPIC = event_topic(TRANSFER_SIGNATURE)
DEPOSIT_TOPIC = event_topic(DEPOSIT_SIGNATURE)
WITHDRAW_TOPIC = event_topic(WITHDRAW_SIGNATURE)

TOTAL_SUPPLY = "totalSupply()"
BALANCE_OF = "balanceOf(address)"
GET_SOS_POOL = "getSOSPool()"


def uint_topic(value: int) -> str:
    """Encode an indexed uint256 as a 32-byte topic."""
    return "0x" + format(int(value), "064x")


def address_from_topic(topic: str) -> str:
    """Extract the lower-cased address packed into an indexed topic."""
    t = topic.lower()
    if not t.startswith("0x") or len(t) != 66:
        raise ValueError(f"unexpected topic format: {topic}")
    return "0x" + t[-40:]


def topic_filter(source: SourceSpec) -> list:
    """eth_getLogs topic filter for a source.

    Farms are filtered on both event types and, when configured, on the
    indexed pool id in topic 2.
    """
    if source.role is SourceRole.POOL_FARM:
        topics: list = [[DEPOSIT_TOPIC, WITHDRAW_TOPIC]]
        if source.pool_id is not None:
            topics += [None, uint_topic(source.pool_id)]
        return topics
    return [TRANSFER_TOPIC]


def _arg_types(signature: str) -> list[str]:
    inner = signature[signature.index("(") + 1 : signature.rindex(")")]
    return [t.strip() for t in inner.split(",") if t.strip()]


def encode_call(signature: str, args: Sequence[object] = ()) -> str:
    """Calldata for a view call: selector followed by ABI-encoded args."""
    types = _arg_types(signature)
    if len(types) != len(args):
        raise ValueError(f"{signature} expects {len(types)} args, got {len(args)}")
    payload = encode(types, list(args)) if types else b""
    return function_selector(signature) + payload.hex()


def decode_uint(result: str) -> int:
    """Decode a single uint256 return value."""
    raw = bytes.fromhex(result[2:] if result.startswith("0x") else result)
    if len(raw) < 32:
        raise ValueError(f"return data too short: {result!r}")
    return int(decode(["uint256"], raw[:32])[0])


__all__ = [
    "BALANCE_OF",
    "DEPOSIT_TOPIC",
    "GET_SOS_POOL",
    "TOTAL_SUPPLY",
    "TRANSFER_TOPIC",
    "WITHDRAW_TOPIC",
    "address_from_topic",
    "decode_uint",
    "encode_call",
    "event_topic",
    "function_selector",
    "topic_filter",
    "uint_topic",
]
