"""Percentile ranking of SOS power records."""

from __future__ import annotations

from typing import Mapping, Sequence

import numpy as np

from .errors import PercentileRangeError
from .models import CompositeRecord, PercentileResult

DEFAULT_PERCENTILES: tuple[float, ...] = (
    15, 25, 35, 50, 60, 75, 80, 90, 95, 99, 99.9, 99.99, 99.999,
)


def rank_records(records: Mapping[str, CompositeRecord]) -> list[CompositeRecord]:
    """Records sorted ascending by sos_power; ties keep input order."""
    return sorted(records.values(), key=lambda r: r.sos_power)


def percentile_indices(n: int, requested: Sequence[float]) -> list[int]:
    """0-based index ceil(n * p / 100) - 1 for each requested percentile.

    Raises PercentileRangeError when p is outside (0, 100] or the index
    falls outside [0, n).
    """
    ps = np.asarray(list(requested), dtype=np.float64)
    if ps.size == 0:
        return []

    bad = ps[(ps <= 0) | (ps > 100) | np.isnan(ps)]
    if bad.size:
        raise PercentileRangeError(f"percentiles must be in (0, 100], got {bad.tolist()}")

    indices = np.ceil(n * ps / 100).astype(np.int64) - 1
    out_of_range = (indices < 0) | (indices >= n)
    if out_of_range.any():
        raise PercentileRangeError(
            f"percentiles {ps[out_of_range].tolist()} are out of range for {n} records"
        )
    return [int(i) for i in indices]


def percentiles(
    records: Mapping[str, CompositeRecord],
    requested: Sequence[float] = DEFAULT_PERCENTILES,
) -> list[PercentileResult]:
    """Record at each requested percentile, in request order."""
    ranked = rank_records(records)
    indices = percentile_indices(len(ranked), requested)
    return [
        PercentileResult(percentile=float(p), index=i, record=ranked[i])
        for p, i in zip(requested, indices)
    ]


__all__ = ["DEFAULT_PERCENTILES", "percentile_indices", "percentiles", "rank_records"]
