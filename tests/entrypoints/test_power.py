"""Tests for the sos-power entrypoint: report on success, none on failure."""

import os
import tempfile

import pytest

from sospower.base.config import (
    MASTER_CHEF_V2_ADDRESS,
    SLP_ADDRESS,
    SOS_ADDRESS,
    SOS_GENESIS_BLOCK,
    VESOS_ADDRESS,
    PowerSettings,
)
from sospower.chain.abi import BALANCE_OF, GET_SOS_POOL, TOTAL_SUPPLY
from sospower.entrypoints import power
from sospower.ledger.errors import TransportError
from sospower.ledger.report import report_path

AAA = "0x" + "a" * 40
# only the SOS token is deployed this early; the other sources replay nothing
END_BLOCK = SOS_GENESIS_BLOCK + 10
ETHER = 10**18


class FakeClient:
    """Stands in for RPCClient: logs from an event source, reads from a table."""

    def __init__(self, events, reader):
        self.events = events
        self.reader = reader
        self.closed = False

    async def block_number(self):
        return END_BLOCK

    async def get_logs(self, from_block, to_block, address, topics):
        return await self.events.get_logs(from_block, to_block, address, topics)

    async def read_uint(self, address, method, block, args=()):
        return await self.reader.read_uint(address, method, block, args)

    async def close(self):
        self.closed = True


@pytest.fixture
def data_dir():
    with tempfile.TemporaryDirectory() as d:
        yield d


@pytest.fixture
def client_factory(monkeypatch, log_factory, event_source_cls, reader_cls):
    """Patches RPCClient in the entrypoint; returns the list of clients built."""
    built = []

    def install(fail_at=None):
        logs = [log_factory.mint(SOS_GENESIS_BLOCK + 1, 0, AAA, 50 * ETHER, address=SOS_ADDRESS)]
        reader = reader_cls({
            (VESOS_ADDRESS, GET_SOS_POOL): 300,
            (VESOS_ADDRESS, TOTAL_SUPPLY): 200,
            (SOS_ADDRESS, BALANCE_OF): 50,
            (SLP_ADDRESS, TOTAL_SUPPLY): 1000,
        })

        def factory(rpc_url, **kwargs):
            client = FakeClient(event_source_cls(logs, fail_at=fail_at), reader)
            built.append(client)
            return client

        monkeypatch.setattr(power, "RPCClient", factory)
        return built

    return install


class TestRun:

    @pytest.mark.asyncio
    async def test_writes_report_at_latest_block(self, client_factory, data_dir):
        clients = client_factory()
        end_block = await power.run(PowerSettings(rpc_url="http://node.test", data_dir=data_dir))

        assert end_block == END_BLOCK
        lines = report_path(data_dir, END_BLOCK).read_text().splitlines()
        assert len(lines) == 2
        assert lines[1].startswith(f"{AAA},{5 * ETHER},")
        assert clients[0].closed

    @pytest.mark.asyncio
    async def test_failed_source_writes_no_report(self, client_factory, data_dir):
        clients = client_factory(fail_at=SOS_GENESIS_BLOCK + 1)
        settings = PowerSettings(rpc_url="http://node.test", target_block=END_BLOCK, data_dir=data_dir)

        with pytest.raises(TransportError) as exc:
            await power.run(settings)

        assert exc.value.source == SOS_ADDRESS
        assert not report_path(data_dir, END_BLOCK).exists()
        assert clients[0].closed


class TestMain:

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for key in list(os.environ):
            if key.startswith("SOSPOWER_") or key in ("ALCHEMY_KEY", "TARGET_BLOCK"):
                monkeypatch.delenv(key)
        monkeypatch.setenv("SOSPOWER_TEST_MODE", "true")

    def _argv(self, monkeypatch, *extra):
        monkeypatch.setattr("sys.argv", ["sos-power", *extra])

    def test_failed_source_exits_with_status_one(self, monkeypatch, client_factory, data_dir):
        client_factory(fail_at=SOS_GENESIS_BLOCK + 1)
        self._argv(monkeypatch, "--rpc.url", "http://node.test",
                   "--target_block", str(END_BLOCK), "--data_dir", data_dir)

        with pytest.raises(SystemExit) as exc:
            power.main()

        assert exc.value.code == 1
        assert not report_path(data_dir, END_BLOCK).exists()

    def test_missing_rpc_url_exits_with_status_one(self, monkeypatch, client_factory, data_dir):
        clients = client_factory()
        self._argv(monkeypatch, "--data_dir", data_dir)

        with pytest.raises(SystemExit) as exc:
            power.main()

        assert exc.value.code == 1
        assert clients == []

    def test_successful_run_writes_report(self, monkeypatch, client_factory, data_dir):
        client_factory()
        self._argv(monkeypatch, "--rpc.url", "http://node.test",
                   "--target_block", str(END_BLOCK), "--data_dir", data_dir,
                   "--exclude", MASTER_CHEF_V2_ADDRESS)

        power.main()

        assert report_path(data_dir, END_BLOCK).exists()
