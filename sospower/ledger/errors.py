"""Error taxonomy for replay, snapshots and scoring."""

from __future__ import annotations


class PowerError(Exception):
    """Base class for every error raised by sospower."""


class RangeTooLargeError(PowerError):
    """The node refused a log query because the result set is too large.

    Raised by an EventSource; the replayer recovers by shrinking its batch.
    """

    def __init__(self, message: str, *, from_block: int | None = None, to_block: int | None = None):
        super().__init__(message)
        self.from_block = from_block
        self.to_block = to_block


class TransportError(PowerError):
    """Any other failure talking to the node. Fatal for the run."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        from_block: int | None = None,
        to_block: int | None = None,
        code: int | None = None,
    ):
        super().__init__(message)
        self.source = source
        self.from_block = from_block
        self.to_block = to_block
        self.code = code

    def context(self) -> dict:
        return {
            "source": self.source,
            "from_block": self.from_block,
            "to_block": self.to_block,
            "code": self.code,
        }

    def __str__(self) -> str:
        msg = super().__str__()
        if self.source is not None and self.from_block is not None:
            return f"{msg} (source={self.source}, blocks={self.from_block}-{self.to_block})"
        return msg


class DecodeError(PowerError):
    """A log returned for a source could not be decoded into a ledger event."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        block_number: int | None = None,
        log_index: int | None = None,
    ):
        super().__init__(message)
        self.source = source
        self.block_number = block_number
        self.log_index = log_index

    def context(self) -> dict:
        return {
            "source": self.source,
            "block_number": self.block_number,
            "log_index": self.log_index,
        }

    def __str__(self) -> str:
        msg = super().__str__()
        if self.source is not None:
            return f"{msg} (source={self.source}, log={self.block_number}:{self.log_index})"
        return msg


class SnapshotIntegrityError(PowerError):
    """A persisted snapshot does not match its manifest."""


class DivisionPreconditionError(PowerError):
    """A total supply read at the target block is zero."""


class PercentileRangeError(PowerError, ValueError):
    """A requested percentile resolves outside the ranked records."""


__all__ = [
    "DecodeError",
    "DivisionPreconditionError",
    "PercentileRangeError",
    "PowerError",
    "RangeTooLargeError",
    "SnapshotIntegrityError",
    "TransportError",
]
