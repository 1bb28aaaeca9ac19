from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from moedinha.models.enums import TransactionType
from moedinha.schemas.common import ORMModel


class InvoiceAccountOut(ORMModel):
    id: int
    name: str
    credit_limit: Decimal | None = None
    closing_day: int
    due_day: int


class InvoicePeriodOut(ORMModel):
    year: int
    month: int
    start: date
    end: date
    closing_date: date
    due_date: date


class InvoiceTransactionOut(ORMModel):
    id: int
    type: TransactionType
    amount: Decimal
    tx_date: date
    description: str | None = None
    installment_id: str | None = None
    category_id: int | None = None


class InvoiceOut(BaseModel):
    account: InvoiceAccountOut
    period: InvoicePeriodOut
    total: Decimal
    status: str
    transactions: list[InvoiceTransactionOut]


class InvoiceMonthOut(ORMModel):
    year: int
    month: int
    label: str
