from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.orm import Session

from moedinha.core.context import RequestContext
from moedinha.models.distribution import Distribution
from moedinha.models.enums import BaseIncomeMode, TransactionType
from moedinha.models.snapshot import MonthSnapshot
from moedinha.models.transaction import Transaction
from moedinha.services.allocation import TOTAL_BPS
from moedinha.services.distribution import get_active_distribution
from moedinha.utils.dates import days_in_month, month_end, month_start
from moedinha.utils.decimal_math import as_json_number, money, pct


AVERAGE_WINDOWS = {
    BaseIncomeMode.avg_3m: 3,
    BaseIncomeMode.avg_6m: 6,
}


@dataclass(frozen=True)
class ExactFigures:
    budget: Decimal
    spend_pct: Decimal
    pace_ideal: Decimal
    projection: Decimal


@dataclass(frozen=True)
class BucketMetrics:
    bucket_id: int
    budget: Decimal
    spend: Decimal
    spend_pct: Decimal
    pace_ideal: Decimal
    projection: Decimal
    # Unrounded values; alert thresholds are checked against these.
    exact: ExactFigures | None = field(default=None, repr=False, compare=False)

    def as_json(self) -> dict:
        return {
            "bucket_id": self.bucket_id,
            "budget": as_json_number(self.budget),
            "spend": as_json_number(self.spend),
            "spend_pct": as_json_number(self.spend_pct),
            "pace_ideal": as_json_number(self.pace_ideal),
            "projection": as_json_number(self.projection),
        }


@dataclass(frozen=True)
class MonthlyMetrics:
    month: date
    base_income: Decimal
    base_income_mode: BaseIncomeMode
    bucket_data: list[BucketMetrics]
    day_ratio: Decimal
    total_spend: Decimal
    total_budget: Decimal


@dataclass(frozen=True)
class PendingStats:
    pending_count: int
    pending_pct: Decimal


def _live_transactions(org_id: int, tx_type: TransactionType, start: date, end: date):
    return select(Transaction).where(
        Transaction.org_id == org_id,
        Transaction.type == tx_type,
        Transaction.tx_date >= start,
        Transaction.tx_date <= end,
        Transaction.deleted_at.is_(None),
    )


def _current_month_income(db: Session, org_id: int, month: date) -> Decimal:
    rows = db.scalars(
        _live_transactions(org_id, TransactionType.income, month_start(month), month_end(month))
    ).all()
    return money(sum((money(row.amount) for row in rows), money(0)))


def _average_income(db: Session, org_id: int, month: date, num_months: int) -> Decimal:
    start = month_start(month) - relativedelta(months=num_months - 1)
    rows = db.scalars(
        _live_transactions(org_id, TransactionType.income, start, month_end(month))
    ).all()

    by_month: dict[tuple[int, int], Decimal] = defaultdict(lambda: money(0))
    for row in rows:
        key = (row.tx_date.year, row.tx_date.month)
        by_month[key] = money(by_month[key] + money(row.amount))

    # Months without any income row are left out of the denominator.
    months_with_income = len(by_month) or 1
    total = sum(by_month.values(), money(0))
    return money(total / Decimal(months_with_income))


def get_base_income(db: Session, org_id: int, month: date, distribution: Distribution) -> Decimal:
    mode = BaseIncomeMode(distribution.base_income_mode)
    if mode == BaseIncomeMode.planned_manual and distribution.planned_income is not None:
        return money(distribution.planned_income)
    if mode in AVERAGE_WINDOWS:
        return _average_income(db, org_id, month, AVERAGE_WINDOWS[mode])
    return _current_month_income(db, org_id, month)


def _spend_by_bucket(db: Session, org_id: int, month: date) -> dict[int | None, Decimal]:
    rows = db.scalars(
        _live_transactions(org_id, TransactionType.expense, month_start(month), month_end(month))
    ).all()
    spend: dict[int | None, Decimal] = defaultdict(lambda: money(0))
    for row in rows:
        spend[row.bucket_id] = money(spend[row.bucket_id] + abs(money(row.amount)))
    return spend


def days_elapsed(month: date, today: date) -> int:
    """Days of ``month`` elapsed through ``today`` (inclusive); <= 0 for future months."""
    end = min(today, month_end(month))
    return (end - month_start(month)).days + 1


def _exact_day_ratio(month: date, today: date) -> Decimal:
    ratio = Decimal(days_elapsed(month, today)) / Decimal(days_in_month(month))
    return min(Decimal(1), max(Decimal(0), ratio))


def day_ratio(month: date, today: date) -> Decimal:
    return pct(_exact_day_ratio(month, today))


def _upsert_snapshot(db: Session, org_id: int, metrics: MonthlyMetrics, ctx: RequestContext) -> MonthSnapshot:
    snapshot = db.scalar(
        select(MonthSnapshot).where(
            MonthSnapshot.org_id == org_id,
            MonthSnapshot.month == metrics.month,
        )
    )
    if snapshot is None:
        snapshot = MonthSnapshot(org_id=org_id, month=metrics.month)
        db.add(snapshot)
    snapshot.base_income = metrics.base_income
    snapshot.base_income_mode = metrics.base_income_mode
    snapshot.bucket_data = [row.as_json() for row in metrics.bucket_data]
    snapshot.day_ratio = metrics.day_ratio
    snapshot.total_spend = metrics.total_spend
    snapshot.total_budget = metrics.total_budget
    snapshot.computed_at = ctx.now()
    db.flush()
    return snapshot


def compute_monthly_metrics(db: Session, ctx: RequestContext, month: date) -> MonthlyMetrics | None:
    """Compute per-bucket budget/spend/pace/projection for ``month`` and upsert the snapshot.

    Returns ``None`` when the org has no distribution with buckets. The result is
    handed straight to the alert evaluator so it does not need to re-read the snapshot.
    """
    month = month_start(month)
    active = get_active_distribution(db, ctx.org_id)
    if active is None:
        return None

    base_income = get_base_income(db, ctx.org_id, month, active.distribution)
    spend_by_bucket = _spend_by_bucket(db, ctx.org_id, month)

    total_days = days_in_month(month)
    elapsed = days_elapsed(month, ctx.today())
    ratio = day_ratio(month, ctx.today())
    exact_ratio = _exact_day_ratio(month, ctx.today())

    rows: list[BucketMetrics] = []
    total_spend = money(0)
    total_budget = Decimal(0)
    for bucket in active.buckets:
        budget = base_income * Decimal(bucket.percent_bps) / Decimal(TOTAL_BPS)
        spend = spend_by_bucket.get(bucket.id, money(0))
        spend_pct = (spend / budget) * 100 if budget > 0 else Decimal(0)
        pace_ideal = budget * ratio
        projection = (spend / Decimal(elapsed)) * total_days if elapsed > 0 else Decimal(0)
        rows.append(
            BucketMetrics(
                bucket_id=bucket.id,
                budget=money(budget),
                spend=money(spend),
                spend_pct=pct(spend_pct),
                pace_ideal=money(pace_ideal),
                projection=money(projection),
                exact=ExactFigures(
                    budget=budget,
                    spend_pct=spend_pct,
                    pace_ideal=budget * exact_ratio,
                    projection=projection,
                ),
            )
        )
        total_spend = money(total_spend + spend)
        total_budget += budget

    metrics = MonthlyMetrics(
        month=month,
        base_income=base_income,
        base_income_mode=BaseIncomeMode(active.distribution.base_income_mode),
        bucket_data=rows,
        day_ratio=ratio,
        total_spend=total_spend,
        total_budget=money(total_budget),
    )
    _upsert_snapshot(db, ctx.org_id, metrics, ctx)
    return metrics


def pending_stats(db: Session, org_id: int, month: date) -> PendingStats:
    """Expenses of the month not yet assigned to a bucket: count and share of spend."""
    rows = db.scalars(
        _live_transactions(org_id, TransactionType.expense, month_start(month), month_end(month))
    ).all()
    total = money(sum((abs(money(row.amount)) for row in rows), money(0)))
    pending = [row for row in rows if row.bucket_id is None]
    pending_spend = money(sum((abs(money(row.amount)) for row in pending), money(0)))
    share = pct(pending_spend / total * 100) if total > 0 else pct(0)
    return PendingStats(pending_count=len(pending), pending_pct=share)


def get_snapshot(db: Session, ctx: RequestContext, month: date) -> MonthSnapshot | None:
    return db.scalar(
        select(MonthSnapshot).where(
            MonthSnapshot.org_id == ctx.org_id,
            MonthSnapshot.month == month_start(month),
        )
    )
