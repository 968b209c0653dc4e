"""Deterministic SOS power computation from replayed balances.

This is the shared scoring path: the same balances and pool ratios always
produce the same records. No randomness, no external state.

Normalization (integer arithmetic, truncating division, full numerator
computed before dividing):
- SOS:   balance / 10
- veSOS: balance * sos_in_staking_pool / vesos_total_supply   (0 when balance is 0)
- SLP:   (held + farmed) * sos_in_slp_pool * 2 / slp_total_supply
"""

from __future__ import annotations

from typing import Iterable, Mapping

from .errors import DivisionPreconditionError
from .models import BalanceMapping, CompositeRecord, PoolRatios, SourceRole

SOS_DIVISOR = 10
SLP_POOL_SIDES = 2


def _tdiv(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero."""
    q = abs(numerator) // abs(denominator)
    return q if (numerator >= 0) == (denominator > 0) else -q


def check_ratios(ratios: PoolRatios) -> None:
    """Reject pool ratios that would divide by zero."""
    if ratios.escrow_total_supply == 0:
        raise DivisionPreconditionError("veSOS total supply is zero at the target block")
    if ratios.pool_total_supply == 0:
        raise DivisionPreconditionError("SLP total supply is zero at the target block")


def normalize_record(record: CompositeRecord, ratios: PoolRatios) -> CompositeRecord:
    """Fill the normalized contributions and sos_power of one record."""
    record.normalized_sos_balance = _tdiv(record.sos_balance, SOS_DIVISOR)

    if record.ve_sos_balance != 0:
        record.normalized_ve_sos_balance = _tdiv(
            record.ve_sos_balance * ratios.escrow_pool_reserve,
            ratios.escrow_total_supply,
        )
    else:
        record.normalized_ve_sos_balance = 0

    record.normalized_slp_balance = _tdiv(
        record.slp_balance * ratios.pool_token_reserve * SLP_POOL_SIDES,
        ratios.pool_total_supply,
    )

    record.derive_power()
    return record


def merge_balances(balances_by_role: Mapping[SourceRole | str, BalanceMapping]) -> dict[str, CompositeRecord]:
    """One record per account seen in any source, raw balances only."""
    by_role = {SourceRole(role): balances for role, balances in balances_by_role.items()}
    records: dict[str, CompositeRecord] = {}

    def _record(account: str) -> CompositeRecord:
        if account not in records:
            records[account] = CompositeRecord(account=account)
        return records[account]

    for account, value in by_role.get(SourceRole.PRIMARY, {}).items():
        _record(account).sos_balance = value
    for account, value in by_role.get(SourceRole.ESCROW, {}).items():
        _record(account).ve_sos_balance = value
    for account, value in by_role.get(SourceRole.POOL_SHARE, {}).items():
        _record(account).slp_balance = value
    for account, value in by_role.get(SourceRole.POOL_FARM, {}).items():
        rec = _record(account)
        rec.slp_balance = rec.slp_balance + value

    return records


def compute_power(
    balances_by_role: Mapping[SourceRole | str, BalanceMapping],
    ratios: PoolRatios,
    excluded: Iterable[str] = (),
) -> dict[str, CompositeRecord]:
    """Combine per-source balances into SOS power records.

    Args:
        balances_by_role: BalanceMapping per source role. Missing roles count
            as empty.
        ratios: Pool constants read at the target block.
        excluded: Accounts (any case) dropped from the output regardless of score.

    Returns:
        account -> CompositeRecord, without excluded or zero-power accounts.
    """
    check_ratios(ratios)
    excluded_set = {a.lower() for a in excluded}

    records = merge_balances(balances_by_role)
    result: dict[str, CompositeRecord] = {}
    for account, record in records.items():
        if account.lower() in excluded_set:
            continue
        normalize_record(record, ratios)
        if record.sos_power == 0:
            continue
        result[account] = record
    return result


__all__ = ["check_ratios", "compute_power", "merge_balances", "normalize_record"]
