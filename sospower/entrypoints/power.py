"""SOS power entrypoint.

Replays SOS, veSOS, SLP and the SLP farm up to a target block, writes
{data_dir}/sos-power-{block}.csv and logs the requested percentiles.

Any fatal error aborts the run before the report is written.
"""

import argparse
import asyncio
import os
import sys

import bittensor as bt
from dotenv import load_dotenv

from sospower.base.config import PowerSettings, add_args, load_settings
from sospower.chain.decoder import LogDecoder
from sospower.chain.rpc import RPCClient
from sospower.ledger.engine import PowerEngine
from sospower.ledger.errors import DecodeError, PowerError, TransportError
from sospower.ledger.percentiles import percentiles
from sospower.ledger.report import format_percentile, report_path, write_report
from sospower.ledger.store.filesystem import FilesystemStore


async def run(settings: PowerSettings) -> int:
    """Compute and write the report. Returns the end block used."""
    client = RPCClient(
        settings.rpc_url,
        timeout=settings.rpc_timeout,
        max_retries=settings.rpc_max_retries,
    )
    try:
        end_block = settings.target_block
        if end_block is None:
            end_block = await client.block_number()

        engine = PowerEngine(
            sources=settings.sources(),
            event_source=client,
            decoder=LogDecoder(),
            reader=client,
            store=FilesystemStore(data_dir=settings.data_dir),
            excluded=settings.excluded_accounts,
        )
        records = await engine.compute_composite(end_block)
    finally:
        await client.close()

    ranked = percentiles(records, settings.percentiles) if records else []
    path = write_report(report_path(settings.data_dir, end_block), records)
    bt.logging.info({"sos_power": {"end_block": end_block, "accounts": len(records), "report": str(path)}})

    for result in ranked:
        bt.logging.info(format_percentile(result))
    return end_block


def main() -> None:
    if os.environ.get("SOSPOWER_TEST_MODE") != "true":
        load_dotenv()

    parser = argparse.ArgumentParser(description="SOS power snapshot")
    bt.logging.add_args(parser)
    add_args(parser)
    args = parser.parse_args()

    settings = load_settings(args)
    if not settings.rpc_url:
        bt.logging.error("SOSPOWER_RPC_URL (or ALCHEMY_KEY) is required")
        sys.exit(1)

    bt.logging.info({"sos_power": "starting", "target_block": settings.target_block})

    try:
        asyncio.run(run(settings))
    except (TransportError, DecodeError) as e:
        bt.logging.error({"sos_power": "failed", "error": str(e), **e.context()})
        sys.exit(1)
    except PowerError as e:
        bt.logging.error({"sos_power": "failed", "error": str(e), "kind": type(e).__name__})
        sys.exit(1)
    except KeyboardInterrupt:
        bt.logging.info({"sos_power": "keyboard_interrupt"})
        sys.exit(130)


if __name__ == "__main__":
    main()
