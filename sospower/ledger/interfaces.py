"""Protocols for the chain-facing collaborators of the replay engine.

Implementations: RPCClient (JSON-RPC over httpx) and LogDecoder (ABI
decoding). Tests substitute in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from sospower.ledger.models import LedgerEvent, RawLog


@runtime_checkable
class EventSource(Protocol):
    """Returns logs matching an address + topic filter over a block range."""

    async def get_logs(
        self,
        from_block: int,
        to_block: int,
        address: str,
        topics: Sequence[object],
    ) -> list[RawLog]:
        """Fetch logs for [from_block, to_block] inclusive.

        Raises RangeTooLargeError when the node refuses the range and
        TransportError for any other failure.
        """
        ...


@runtime_checkable
class EventDecoder(Protocol):
    """Turns a raw log into a typed ledger event."""

    def decode(self, raw: RawLog) -> LedgerEvent:
        ...


@runtime_checkable
class ContractReader(Protocol):
    """Point-in-time contract reads."""

    async def read_uint(
        self,
        address: str,
        method: str,
        block: int,
        args: Sequence[object] = (),
    ) -> int:
        ...


__all__ = ["ContractReader", "EventDecoder", "EventSource"]
