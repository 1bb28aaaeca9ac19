from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
import enum

from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.orm import Session

from moedinha.core.context import RequestContext
from moedinha.models.account import Account
from moedinha.models.enums import TransactionType
from moedinha.models.transaction import Transaction
from moedinha.services.errors import OperationError, invalid, not_found
from moedinha.utils.dates import PT_BR_MONTHS, clamp_day
from moedinha.utils.decimal_math import money


class InvoiceStatus(str, enum.Enum):
    open = "open"
    closed = "closed"
    overdue = "overdue"
    # Needs payment reconciliation, which does not exist yet; never returned.
    paid = "paid"


@dataclass(frozen=True)
class InvoicePeriod:
    year: int
    month: int
    start: date
    end: date
    closing_date: date
    due_date: date


@dataclass(frozen=True)
class InvoiceData:
    account: Account
    period: InvoicePeriod
    total: Decimal
    status: InvoiceStatus
    transactions: list[Transaction]


@dataclass(frozen=True)
class InvoiceMonth:
    year: int
    month: int
    label: str


def invoice_period(closing_day: int, due_day: int, year: int, month: int) -> InvoicePeriod:
    """Statement window and due date of the invoice that closes in (year, month).

    The window runs from the previous month's closing date through the day before
    this month's closing date. When ``due_day < closing_day`` the bill is due the
    following month. Days past the end of a short month clamp to its last day.
    """
    first = date(year, month, 1)
    previous = first - relativedelta(months=1)
    closing_date = clamp_day(year, month, closing_day)
    start = clamp_day(previous.year, previous.month, closing_day)
    end = closing_date - timedelta(days=1)

    due_month = first + relativedelta(months=1) if due_day < closing_day else first
    due_date = clamp_day(due_month.year, due_month.month, due_day)
    return InvoicePeriod(
        year=year,
        month=month,
        start=start,
        end=end,
        closing_date=closing_date,
        due_date=due_date,
    )


def invoice_status(period: InvoicePeriod, total: Decimal, today: date) -> InvoiceStatus:
    if today < period.closing_date:
        return InvoiceStatus.open
    # A negative total is debt still outstanding.
    if today > period.due_date and total < 0:
        return InvoiceStatus.overdue
    return InvoiceStatus.closed


def is_retroactive_installment_backfill(tx: Transaction) -> bool:
    """Installment rows back-filled for months before they were registered."""
    if TransactionType(tx.type) != TransactionType.expense or not tx.installment_id:
        return False
    if (tx.meta or {}).get("exclude_from_cash_balance") is True:
        return True
    if tx.tx_date is None or tx.created_at is None:
        return False
    return (tx.tx_date.year, tx.tx_date.month) < (tx.created_at.year, tx.created_at.month)


def signed_total(transactions: list[Transaction]) -> Decimal:
    total = money(0)
    for tx in transactions:
        tx_type = TransactionType(tx.type)
        if tx_type == TransactionType.expense:
            total = money(total - abs(money(tx.amount)))
        elif tx_type == TransactionType.income:
            total = money(total + abs(money(tx.amount)))
    return total


def _get_account(db: Session, ctx: RequestContext, account_id: int) -> Account | None:
    return db.scalar(select(Account).where(Account.id == account_id, Account.org_id == ctx.org_id))


def get_invoice_data(
    db: Session,
    ctx: RequestContext,
    account_id: int,
    year: int | None = None,
    month: int | None = None,
) -> InvoiceData | OperationError:
    account = _get_account(db, ctx, account_id)
    if account is None:
        return not_found("Conta não encontrada.")
    if not account.closing_day or not account.due_day:
        return invalid("Conta não configurada como cartão de crédito.")

    today = ctx.today()
    target_year = year if year is not None else today.year
    target_month = month if month is not None else today.month
    if target_month < 1 or target_month > 12:
        return invalid("Mês inválido.")

    period = invoice_period(account.closing_day, account.due_day, target_year, target_month)
    rows = db.scalars(
        select(Transaction)
        .where(
            Transaction.account_id == account.id,
            Transaction.deleted_at.is_(None),
            Transaction.tx_date >= period.start,
            Transaction.tx_date <= period.end,
        )
        .order_by(Transaction.tx_date.desc(), Transaction.id.desc())
    ).all()
    visible = [row for row in rows if not is_retroactive_installment_backfill(row)]

    total = signed_total(visible)
    return InvoiceData(
        account=account,
        period=period,
        total=total,
        status=invoice_status(period, total, today),
        transactions=visible,
    )


def month_label(year: int, month: int) -> str:
    return f"{PT_BR_MONTHS[month - 1]} de {year}"


def get_available_invoices(db: Session, ctx: RequestContext, account_id: int) -> list[InvoiceMonth] | OperationError:
    """Months with activity on the account, plus the current and next month, newest first."""
    account = _get_account(db, ctx, account_id)
    if account is None:
        return not_found("Conta não encontrada.")

    rows = db.scalars(
        select(Transaction).where(
            Transaction.account_id == account.id,
            Transaction.deleted_at.is_(None),
        )
    ).all()

    keys = {
        (row.tx_date.year, row.tx_date.month)
        for row in rows
        if not is_retroactive_installment_backfill(row)
    }
    today = ctx.today()
    upcoming = today + relativedelta(months=1)
    keys.add((today.year, today.month))
    keys.add((upcoming.year, upcoming.month))

    return [
        InvoiceMonth(year=year, month=month, label=month_label(year, month))
        for year, month in sorted(keys, reverse=True)
    ]
