"""Shared fakes for replay and engine tests.

FakeEventSource serves pre-built RawLogs from memory, refuses ranges that
would return more than ``max_logs`` (like a real node), and returns each
batch in reverse chain order so callers must sort.
"""

from __future__ import annotations

from typing import Sequence

import pytest

from sospower.chain.abi import DEPOSIT_TOPIC, TRANSFER_TOPIC, WITHDRAW_TOPIC, uint_topic
from sospower.ledger.errors import RangeTooLargeError, TransportError
from sospower.ledger.models import ZERO_ADDRESS, RawLog

TOKEN = "0x" + "1" * 40
FARM = "0x" + "2" * 40


def _addr_topic(address: str) -> str:
    return "0x" + "0" * 24 + address.lower()[2:]


def _word(value: int) -> str:
    return "0x" + format(value, "064x")


class LogFactory:
    """Builds ABI-correct raw logs for the decoder."""

    def transfer(self, block, index, sender, recipient, value, address=TOKEN) -> RawLog:
        return RawLog(
            address=address,
            topics=[TRANSFER_TOPIC, _addr_topic(sender), _addr_topic(recipient)],
            data=_word(value),
            block_number=block,
            log_index=index,
        )

    def mint(self, block, index, recipient, value, address=TOKEN) -> RawLog:
        return self.transfer(block, index, ZERO_ADDRESS, recipient, value, address)

    def deposit(self, block, index, user, pid, amount, to=None, address=FARM) -> RawLog:
        return RawLog(
            address=address,
            topics=[DEPOSIT_TOPIC, _addr_topic(user), uint_topic(pid), _addr_topic(to or user)],
            data=_word(amount),
            block_number=block,
            log_index=index,
        )

    def withdraw(self, block, index, user, pid, amount, to=None, address=FARM) -> RawLog:
        return RawLog(
            address=address,
            topics=[WITHDRAW_TOPIC, _addr_topic(user), uint_topic(pid), _addr_topic(to or user)],
            data=_word(amount),
            block_number=block,
            log_index=index,
        )


class FakeEventSource:
    """In-memory EventSource with a result-size limit."""

    def __init__(
        self,
        logs: Sequence[RawLog] = (),
        max_logs: int | None = None,
        fail_at: int | None = None,
    ):
        self.logs = list(logs)
        self.max_logs = max_logs
        self.fail_at = fail_at
        self.calls: list[tuple[int, int, str]] = []

    async def get_logs(self, from_block, to_block, address, topics) -> list[RawLog]:
        self.calls.append((from_block, to_block, address))
        if self.fail_at is not None and from_block <= self.fail_at <= to_block:
            raise TransportError("connection reset by peer")

        wanted = topics[0] if isinstance(topics[0], list) else [topics[0]]
        pid_topic = topics[2] if len(topics) > 2 else None
        matched = [
            log for log in self.logs
            if log.address == address.lower()
            and from_block <= log.block_number <= to_block
            and log.topics[0] in wanted
            and (pid_topic is None or log.topics[2] == pid_topic)
        ]
        if self.max_logs is not None and len(matched) > self.max_logs:
            raise RangeTooLargeError(f"query returned more than {self.max_logs} results")
        return list(reversed(matched))


class MemoryStore:
    """Dict-backed SnapshotStore."""

    def __init__(self):
        self.snapshots: dict = {}
        self.saves = 0

    async def load(self, key):
        stored = self.snapshots.get(key)
        return dict(stored) if stored is not None else None

    async def save(self, key, balances, genesis_block=None):
        self.snapshots[key] = dict(balances)
        self.saves += 1
        return key.snapshot_id

    async def exists(self, key):
        return key in self.snapshots


class FakeReader:
    """ContractReader answering from a {(address, method): value} table."""

    def __init__(self, values: dict[tuple[str, str], int]):
        self.values = {(a.lower(), m): v for (a, m), v in values.items()}
        self.calls: list[tuple[str, str, int]] = []

    async def read_uint(self, address, method, block, args=()):
        self.calls.append((address.lower(), method, block))
        return self.values[(address.lower(), method)]


@pytest.fixture
def log_factory() -> LogFactory:
    return LogFactory()


@pytest.fixture
def event_source_cls():
    return FakeEventSource


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def reader_cls():
    return FakeReader
