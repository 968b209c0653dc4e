"""Balance replay and SOS power scoring.

The ledger module rebuilds per-account balances for each tracked source by
replaying its on-chain events in chain order, caches them as immutable
snapshots keyed by (source, end block), and merges them into a single SOS
power score per account:
- replay: paginated, order-preserving fold of Transfer/Deposit/Withdraw logs
- store: snapshot persistence (filesystem)
- compute_power: normalization against pool ratios read at the target block
- percentiles: ranking and percentile cutoffs
"""

from .models import (
    BalanceMapping,
    CompositeRecord,
    EventKind,
    LedgerEvent,
    PercentileResult,
    PoolRatios,
    RawLog,
    SnapshotKey,
    SnapshotManifest,
    SourceRole,
    SourceSpec,
)
from .compute_power import compute_power
from .errors import (
    DecodeError,
    DivisionPreconditionError,
    PercentileRangeError,
    PowerError,
    RangeTooLargeError,
    SnapshotIntegrityError,
    TransportError,
)
from .percentiles import percentiles

__all__ = [
    "BalanceMapping",
    "CompositeRecord",
    "DecodeError",
    "DivisionPreconditionError",
    "EventKind",
    "LedgerEvent",
    "PercentileRangeError",
    "PercentileResult",
    "PoolRatios",
    "PowerError",
    "RangeTooLargeError",
    "RawLog",
    "SnapshotIntegrityError",
    "SnapshotKey",
    "SnapshotManifest",
    "SourceRole",
    "SourceSpec",
    "TransportError",
    "compute_power",
    "percentiles",
]
