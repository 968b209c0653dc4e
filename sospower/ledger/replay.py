"""Paginated ledger replay.

Walks [genesis_block, end_block] in adaptive batches, pulls logs from an
EventSource, decodes them and folds them into a BalanceMapping in strict
(block_number, log_index) order.

Batch size halves on RangeTooLargeError and never grows back. Any other
error aborts the replay as a TransportError carrying the source and range;
an undecodable log aborts it as a DecodeError carrying the source and position.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

import bittensor as bt

from sospower.chain.abi import topic_filter

from .errors import DecodeError, RangeTooLargeError, TransportError
from .interfaces import EventDecoder, EventSource
from .models import (
    ZERO_ADDRESS,
    BalanceMapping,
    EventKind,
    LedgerEvent,
    RawLog,
    SourceSpec,
)


def fold_event(balances: BalanceMapping, event: LedgerEvent, pool_id: int | None = None) -> None:
    """Apply one event to balances in place.

    Transfers into the null address are burns and are not credited.
    Deposit/Withdraw for a pool other than ``pool_id`` are ignored.
    """
    if event.value == 0:
        return

    if event.kind is EventKind.TRANSFER:
        if event.sender != ZERO_ADDRESS:
            balances[event.sender] = balances.get(event.sender, 0) - event.value
        if event.recipient != ZERO_ADDRESS:
            balances[event.recipient] = balances.get(event.recipient, 0) + event.value
        return

    if pool_id is not None and event.pid != pool_id:
        return

    if event.kind is EventKind.DEPOSIT:
        balances[event.recipient] = balances.get(event.recipient, 0) + event.value
    elif event.kind is EventKind.WITHDRAW:
        balances[event.user] = balances.get(event.user, 0) - event.value


def order_logs(logs: Iterable[RawLog]) -> list[RawLog]:
    """Group logs per block, ascending, each block sorted by log index."""
    by_block: dict[int, list[RawLog]] = defaultdict(list)
    for log in logs:
        by_block[log.block_number].append(log)

    ordered: list[RawLog] = []
    for block in sorted(by_block):
        ordered.extend(sorted(by_block[block], key=lambda l: l.log_index))
    return ordered


def prune_zero(balances: BalanceMapping) -> BalanceMapping:
    """Drop every account whose balance is exactly zero."""
    for account in [a for a, v in balances.items() if v == 0]:
        del balances[account]
    return balances


async def _fetch_batch(
    source: SourceSpec,
    event_source: EventSource,
    start: int,
    end_block: int,
    batch_size: int,
    topics: list,
) -> tuple[list[RawLog], int, int]:
    """Fetch one batch starting at ``start``, halving on oversized ranges.

    Returns (logs, to_block, batch_size) where batch_size is the size that
    finally succeeded.
    """
    while True:
        to_block = min(start + batch_size - 1, end_block)
        try:
            logs = await event_source.get_logs(start, to_block, source.address, topics)
            return logs, to_block, batch_size
        except RangeTooLargeError as e:
            if batch_size <= 1:
                raise TransportError(
                    "log query too large for a single block",
                    source=source.source_id, from_block=start, to_block=to_block,
                ) from e
            batch_size = max(batch_size // 2, 1)
            bt.logging.warning({
                "ledger_replay": {
                    "event": "batch_shrunk",
                    "source": source.name,
                    "from_block": start,
                    "to_block": to_block,
                    "batch_size": batch_size,
                }
            })
        except TransportError as e:
            if e.source is None:
                e.source = source.source_id
                e.from_block = start
                e.to_block = to_block
            raise
        except Exception as e:
            raise TransportError(
                f"log query failed: {e}",
                source=source.source_id, from_block=start, to_block=to_block,
            ) from e


async def replay(
    source: SourceSpec,
    genesis_block: int,
    end_block: int,
    initial_batch_size: int,
    event_source: EventSource,
    decoder: EventDecoder,
) -> BalanceMapping:
    """Rebuild balances for ``source`` as of the end of ``end_block``.

    Args:
        source: The token or farm to replay.
        genesis_block: First block to scan (the contract's deployment block).
        end_block: Last block to scan, inclusive.
        initial_batch_size: Blocks per eth_getLogs request before any shrinking.
        event_source: Log provider.
        decoder: Raw log -> LedgerEvent.

    Returns:
        BalanceMapping with zero balances removed.
    """
    if genesis_block > end_block:
        raise ValueError(f"genesis_block {genesis_block} is after end_block {end_block}")
    if initial_batch_size < 1:
        raise ValueError(f"initial_batch_size must be >= 1, got {initial_batch_size}")

    balances: BalanceMapping = {}
    topics = topic_filter(source)
    batch_size = initial_batch_size
    n_events = 0
    cursor = genesis_block

    while cursor <= end_block:
        logs, to_block, batch_size = await _fetch_batch(
            source, event_source, cursor, end_block, batch_size, topics,
        )
        in_range = (log for log in logs if cursor <= log.block_number <= to_block)
        for log in order_logs(in_range):
            try:
                event = decoder.decode(log)
            except ValueError as e:
                raise DecodeError(
                    str(e), source=source.source_id,
                    block_number=log.block_number, log_index=log.log_index,
                ) from e
            fold_event(balances, event, pool_id=source.pool_id)
            n_events += 1

        bt.logging.debug({
            "ledger_replay": {
                "source": source.name,
                "from_block": cursor,
                "to_block": to_block,
                "logs": len(logs),
            }
        })
        cursor = to_block + 1

    prune_zero(balances)

    negative = [a for a, v in balances.items() if v < 0]
    if negative:
        bt.logging.warning({
            "ledger_replay": {
                "event": "negative_balances",
                "source": source.name,
                "accounts": negative[:10],
                "count": len(negative),
            }
        })

    bt.logging.info({
        "ledger_replay": {
            "source": source.name,
            "genesis_block": genesis_block,
            "end_block": end_block,
            "events": n_events,
            "accounts": len(balances),
            "final_batch_size": batch_size,
        }
    })
    return balances


__all__ = ["fold_event", "order_logs", "prune_zero", "replay"]
