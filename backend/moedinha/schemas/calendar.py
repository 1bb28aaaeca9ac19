from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from moedinha.models.enums import TransactionType
from moedinha.schemas.common import ORMModel


class CalendarEventOut(ORMModel):
    id: str
    date: date
    description: str
    amount: Decimal
    type: TransactionType
    status: str
    is_recurring: bool


class CalendarDayOut(ORMModel):
    date: date
    income: Decimal
    expense: Decimal
    balance_change: Decimal
    events: list[CalendarEventOut]


class CalendarMonthResponse(BaseModel):
    year: int
    month: int
    days: list[CalendarDayOut]
