"""SOS power engine: snapshot-or-replay per source, then score.

One asyncio task per source; tasks share no mutable state. The scorer
runs only after every source has finished. The first failing source
cancels the others and its error propagates to the caller.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Sequence

import bittensor as bt

from sospower.chain.abi import BALANCE_OF, GET_SOS_POOL, TOTAL_SUPPLY

from .compute_power import check_ratios, compute_power
from .interfaces import ContractReader, EventDecoder, EventSource
from .models import BalanceMapping, CompositeRecord, PoolRatios, SnapshotKey, SourceRole, SourceSpec
from .replay import replay
from .store.interface import SnapshotStore


async def fetch_pool_ratios(
    reader: ContractReader,
    sources: dict[SourceRole, SourceSpec],
    block: int,
) -> PoolRatios:
    """Read reserve/supply constants at ``block``."""
    escrow = sources[SourceRole.ESCROW].address
    pool = sources[SourceRole.POOL_SHARE].address
    primary = sources[SourceRole.PRIMARY].address

    escrow_reserve, escrow_supply, pool_reserve, pool_supply = await asyncio.gather(
        reader.read_uint(escrow, GET_SOS_POOL, block),
        reader.read_uint(escrow, TOTAL_SUPPLY, block),
        reader.read_uint(primary, BALANCE_OF, block, [pool]),
        reader.read_uint(pool, TOTAL_SUPPLY, block),
    )
    ratios = PoolRatios(
        escrow_pool_reserve=escrow_reserve,
        escrow_total_supply=escrow_supply,
        pool_token_reserve=pool_reserve,
        pool_total_supply=pool_supply,
    )
    bt.logging.info({"pool_ratios": {"block": block, **{k: str(v) for k, v in ratios.model_dump().items()}}})
    return ratios


class PowerEngine:
    """Computes SOS power records at a target block."""

    def __init__(
        self,
        sources: Sequence[SourceSpec],
        event_source: EventSource,
        decoder: EventDecoder,
        reader: ContractReader,
        store: SnapshotStore,
        excluded: Iterable[str] = (),
    ):
        by_role: dict[SourceRole, SourceSpec] = {}
        for source in sources:
            if source.role in by_role:
                raise ValueError(f"duplicate source role: {source.role.value}")
            by_role[source.role] = source
        missing = [r.value for r in SourceRole if r not in by_role]
        if missing:
            raise ValueError(f"missing source roles: {missing}")

        self.sources = by_role
        self.event_source = event_source
        self.decoder = decoder
        self.reader = reader
        self.store = store
        self.excluded = frozenset(a.lower() for a in excluded)

    async def balances_for(self, source: SourceSpec, end_block: int) -> BalanceMapping:
        """Snapshot hit, or full replay from genesis followed by a save."""
        key = SnapshotKey(source=source.source_id, end_block=end_block)
        cached = await self.store.load(key)
        if cached is not None:
            bt.logging.info({"power_engine": {"source": source.name, "snapshot": "hit", "accounts": len(cached)}})
            return cached

        if source.genesis_block > end_block:
            balances: BalanceMapping = {}
        else:
            balances = await replay(
                source,
                source.genesis_block,
                end_block,
                source.batch_size,
                self.event_source,
                self.decoder,
            )
        await self.store.save(key, balances, genesis_block=source.genesis_block)
        return balances

    async def _all_balances(self, end_block: int) -> dict[SourceRole, BalanceMapping]:
        tasks = {
            role: asyncio.create_task(self.balances_for(source, end_block), name=f"replay:{source.name}")
            for role, source in self.sources.items()
        }
        try:
            results = await asyncio.gather(*tasks.values())
        except BaseException:
            for task in tasks.values():
                task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            raise
        return dict(zip(tasks.keys(), results))

    async def compute_composite(self, end_block: int) -> dict[str, CompositeRecord]:
        """account -> CompositeRecord at ``end_block``."""
        ratios = await fetch_pool_ratios(self.reader, self.sources, end_block)
        check_ratios(ratios)
        balances = await self._all_balances(end_block)
        records = compute_power(balances, ratios, excluded=self.excluded)
        bt.logging.info({
            "power_engine": {
                "end_block": end_block,
                "accounts": len(records),
                "sources": {role.value: len(b) for role, b in balances.items()},
            }
        })
        return records


__all__ = ["PowerEngine", "fetch_pool_ratios"]
