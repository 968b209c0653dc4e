"""ABI decoding of raw logs into LedgerEvents."""

from __future__ import annotations

from eth_abi import decode

from sospower.ledger.models import EventKind, LedgerEvent, RawLog

from .abi import DEPOSIT_TOPIC, TRANSFER_TOPIC, WITHDRAW_TOPIC, address_from_topic

_KINDS = {
    TRANSFER_TOPIC: EventKind.TRANSFER,
    DEPOSIT_TOPIC: EventKind.DEPOSIT,
    WITHDRAW_TOPIC: EventKind.WITHDRAW,
}


def _data_uint(data: str) -> int:
    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    if len(raw) < 32:
        raise ValueError(f"log data too short: need 32 bytes, got {len(raw)}")
    return int(decode(["uint256"], raw[:32])[0])


class LogDecoder:
    """Decodes Transfer, Deposit and Withdraw logs by topic0."""

    def decode(self, raw: RawLog) -> LedgerEvent:
        if not raw.topics:
            raise ValueError(f"anonymous log at {raw.position} cannot be decoded")

        kind = _KINDS.get(raw.topics[0])
        if kind is None:
            raise ValueError(f"unknown event topic {raw.topics[0]} at {raw.position}")

        if kind is EventKind.TRANSFER:
            if len(raw.topics) != 3:
                raise ValueError(f"Transfer at {raw.position} has {len(raw.topics)} topics, expected 3")
            return LedgerEvent(
                kind=kind,
                block_number=raw.block_number,
                log_index=raw.log_index,
                sender=address_from_topic(raw.topics[1]),
                recipient=address_from_topic(raw.topics[2]),
                value=_data_uint(raw.data),
            )

        # Deposit / Withdraw: user, pid and to are indexed; amount is data
        if len(raw.topics) != 4:
            raise ValueError(f"{kind.value} at {raw.position} has {len(raw.topics)} topics, expected 4")
        return LedgerEvent(
            kind=kind,
            block_number=raw.block_number,
            log_index=raw.log_index,
            user=address_from_topic(raw.topics[1]),
            pid=int(raw.topics[2], 16),
            recipient=address_from_topic(raw.topics[3]),
            value=_data_uint(raw.data),
        )


__all__ = ["LogDecoder"]
