"""Basis-point bucket arithmetic (100% == 10000 bps).

Pure functions over ``BucketShare`` lists; nothing here touches the database.
A distribution holds 2-8 buckets whose ``percent_bps`` must add up to exactly
``TOTAL_BPS``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Literal

from moedinha.utils.decimal_math import round_half_up


TOTAL_BPS = 10000
MIN_BUCKETS = 2
MAX_BUCKETS = 8

BalanceStrategy = Literal["flexible", "proportional"]


@dataclass(frozen=True)
class BucketShare:
    id: int | str | None
    percent_bps: int
    is_flexible: bool = False


def _clamp(value: int) -> int:
    return max(0, min(TOTAL_BPS, value))


def _total(buckets: list[BucketShare]) -> int:
    return sum(bucket.percent_bps for bucket in buckets)


def validate_sum(buckets: list[BucketShare]) -> bool:
    return _total(buckets) == TOTAL_BPS


def delta(buckets: list[BucketShare]) -> int:
    """Positive when under-allocated, negative when over-allocated."""
    return TOTAL_BPS - _total(buckets)


def normalize(buckets: list[BucketShare]) -> list[BucketShare]:
    if not buckets:
        return buckets
    total = _total(buckets)
    if total == 0:
        return buckets

    factor = Decimal(TOTAL_BPS) / Decimal(total)
    scaled = [
        replace(bucket, percent_bps=round_half_up(Decimal(bucket.percent_bps) * factor))
        for bucket in buckets[:-1]
    ]
    remainder = TOTAL_BPS - _total(scaled)
    scaled.append(replace(buckets[-1], percent_bps=remainder))
    return scaled


def _balance_flexible(
    buckets: list[BucketShare],
    edited_id: int | str,
    new_value: int,
) -> list[BucketShare]:
    if not any(bucket.id == edited_id for bucket in buckets):
        return list(buckets)

    clamped_edited = _clamp(new_value)
    target = next(
        (bucket for bucket in buckets if bucket.id != edited_id and bucket.is_flexible),
        None,
    ) or next((bucket for bucket in buckets if bucket.id != edited_id), None)

    if target is None:
        return [
            replace(bucket, percent_bps=clamped_edited) if bucket.id == edited_id else bucket
            for bucket in buckets
        ]

    fixed_sum = sum(
        bucket.percent_bps
        for bucket in buckets
        if bucket.id != edited_id and bucket.id != target.id
    )
    next_edited = clamped_edited
    next_flexible = TOTAL_BPS - fixed_sum - next_edited

    # The flexible bucket cannot go negative or above 100%; the edited one gives way.
    if next_flexible < 0:
        next_flexible = 0
        next_edited = TOTAL_BPS - fixed_sum
    elif next_flexible > TOTAL_BPS:
        next_flexible = TOTAL_BPS
        next_edited = TOTAL_BPS - fixed_sum - next_flexible

    next_edited = _clamp(next_edited)
    next_flexible = _clamp(next_flexible)

    rows: list[BucketShare] = []
    for bucket in buckets:
        if bucket.id == edited_id:
            rows.append(replace(bucket, percent_bps=next_edited))
        elif bucket.id == target.id:
            rows.append(replace(bucket, percent_bps=next_flexible))
        else:
            rows.append(bucket)
    return rows


def _balance_proportional(
    buckets: list[BucketShare],
    edited_id: int | str,
    new_value: int,
) -> list[BucketShare]:
    others = [bucket for bucket in buckets if bucket.id != edited_id]
    sum_others = _total(others)
    clamped_edited = _clamp(new_value)
    shortfall = TOTAL_BPS - (sum_others + clamped_edited)

    rows = [
        replace(bucket, percent_bps=clamped_edited) if bucket.id == edited_id else bucket
        for bucket in buckets
    ]
    if not others:
        return rows

    if sum_others > 0:
        rows = [
            bucket
            if bucket.id == edited_id
            else replace(
                bucket,
                percent_bps=round_half_up(
                    Decimal(bucket.percent_bps)
                    + (Decimal(bucket.percent_bps) / Decimal(sum_others)) * shortfall
                ),
            )
            for bucket in rows
        ]

    residual = TOTAL_BPS - _total(rows)
    if residual != 0:
        last = rows[-1]
        rows[-1] = replace(last, percent_bps=max(0, last.percent_bps + residual))
    return rows


def auto_balance(
    buckets: list[BucketShare],
    edited_id: int | str,
    new_value: int,
    strategy: BalanceStrategy,
) -> list[BucketShare]:
    """Set ``edited_id`` to ``new_value`` and rebalance the rest back to 10000.

    ``flexible`` moves the whole difference onto one flexible bucket (the first
    flagged ``is_flexible``, else any other bucket). ``proportional`` spreads it
    across every other bucket by its current share, the last bucket taking the
    rounding remainder.
    """
    if strategy == "flexible":
        return _balance_flexible(buckets, edited_id, new_value)
    return _balance_proportional(buckets, edited_id, new_value)


def percent_to_bps(percent: float | Decimal) -> int:
    return round_half_up(Decimal(str(percent)) * 100)


def bps_to_percent(bps: int | float) -> Decimal:
    return Decimal(round_half_up(bps)) / Decimal(100)
