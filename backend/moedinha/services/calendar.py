from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from moedinha.core.context import RequestContext
from moedinha.models.enums import TransactionStatus, TransactionType
from moedinha.models.recurring import RecurringRule, RecurringRun
from moedinha.models.transaction import Transaction
from moedinha.services.errors import OperationError, invalid
from moedinha.utils.dates import add_frequency, month_end
from moedinha.utils.decimal_math import money


PROJECTED_SUFFIX = " (Previsto)"


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    date: date
    description: str
    amount: Decimal
    type: TransactionType
    status: str
    is_recurring: bool = False


@dataclass
class CalendarDay:
    date: date
    income: Decimal = field(default_factory=lambda: money(0))
    expense: Decimal = field(default_factory=lambda: money(0))
    balance_change: Decimal = field(default_factory=lambda: money(0))
    events: list[CalendarEvent] = field(default_factory=list)

    def add_income(self, amount: Decimal) -> None:
        self.income = money(self.income + amount)
        self.balance_change = money(self.balance_change + amount)

    def add_expense(self, amount: Decimal) -> None:
        self.expense = money(self.expense + amount)
        self.balance_change = money(self.balance_change - amount)


def _empty_month(first: date) -> dict[date, CalendarDay]:
    last = month_end(first)
    days: dict[date, CalendarDay] = {}
    current = first
    while current <= last:
        days[current] = CalendarDay(date=current)
        current += timedelta(days=1)
    return days


def _fold_transactions(db: Session, ctx: RequestContext, days: dict[date, CalendarDay], first: date, last: date) -> None:
    rows = db.scalars(
        select(Transaction)
        .where(
            Transaction.org_id == ctx.org_id,
            Transaction.deleted_at.is_(None),
            Transaction.tx_date >= first,
            Transaction.tx_date <= last,
        )
        .order_by(Transaction.tx_date, Transaction.id)
    ).all()

    for row in rows:
        day = days.get(row.tx_date)
        if day is None:
            continue
        amount = money(row.amount)
        tx_type = TransactionType(row.type)
        if tx_type == TransactionType.expense:
            day.add_expense(amount)
        elif tx_type == TransactionType.income:
            day.add_income(amount)

        fallback = "Despesa" if tx_type == TransactionType.expense else "Receita"
        day.events.append(
            CalendarEvent(
                id=str(row.id),
                date=row.tx_date,
                description=row.description or fallback,
                amount=amount,
                type=tx_type,
                status="pending" if row.status == TransactionStatus.pending else "paid",
            )
        )


def _last_runs(db: Session, rule_ids: list[int]) -> dict[int, date]:
    if not rule_ids:
        return {}
    rows = db.execute(
        select(RecurringRun.rule_id, func.max(RecurringRun.run_at))
        .where(RecurringRun.rule_id.in_(rule_ids), RecurringRun.success.is_(True))
        .group_by(RecurringRun.rule_id)
    ).all()
    return {rule_id: run_at for rule_id, run_at in rows}


def project_occurrences(
    rule: RecurringRule,
    last_run_at: date | None,
    first: date,
    last: date,
    today: date,
) -> list[date]:
    """Occurrence dates of ``rule`` inside [first, last] that fall on or after ``today``."""
    target = add_frequency(last_run_at, rule.frequency) if last_run_at else rule.start_date
    while target < first:
        target = add_frequency(target, rule.frequency)

    dates: list[date] = []
    while target <= last:
        if rule.end_date is not None and target > rule.end_date:
            break
        # Past occurrences that were never materialized are left off the calendar.
        if target >= today:
            dates.append(target)
        target = add_frequency(target, rule.frequency)
    return dates


def _fold_projections(db: Session, ctx: RequestContext, days: dict[date, CalendarDay], first: date, last: date) -> None:
    rules = db.scalars(
        select(RecurringRule)
        .where(RecurringRule.org_id == ctx.org_id, RecurringRule.is_active.is_(True))
        .order_by(RecurringRule.id)
    ).all()
    last_runs = _last_runs(db, [rule.id for rule in rules])
    today = ctx.today()

    for rule in rules:
        amount = money(rule.amount)
        for occurrence in project_occurrences(rule, last_runs.get(rule.id), first, last, today):
            day = days[occurrence]
            # Rules only generate expenses, so projections are always expenses too.
            day.add_expense(amount)
            day.events.append(
                CalendarEvent(
                    id=f"proj-{rule.id}-{occurrence.isoformat()}",
                    date=occurrence,
                    description=f"{rule.description}{PROJECTED_SUFFIX}",
                    amount=amount,
                    type=TransactionType.expense,
                    status="projected",
                    is_recurring=True,
                )
            )


def get_month_financial_events(
    db: Session,
    ctx: RequestContext,
    year: int,
    month: int,
) -> list[CalendarDay] | OperationError:
    """Day-by-day income/expense for a month (1-based), actual transactions plus recurring projections.

    Projections are not reconciled against real transactions; a materialized rule
    and its projection for the same day can both show up.
    """
    if month < 1 or month > 12:
        return invalid("Mês inválido.")
    first = date(year, month, 1)
    last = month_end(first)

    days = _empty_month(first)
    _fold_transactions(db, ctx, days, first, last)
    _fold_projections(db, ctx, days, first, last)
    return list(days.values())
