from __future__ import annotations

import calendar
from datetime import date, datetime

from dateutil.relativedelta import relativedelta

from moedinha.models.enums import Frequency


PT_BR_MONTHS = (
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
)

FREQUENCY_STEP: dict[Frequency, relativedelta] = {
    Frequency.weekly: relativedelta(weeks=1),
    Frequency.monthly: relativedelta(months=1),
    Frequency.yearly: relativedelta(years=1),
}


def month_start(value: date) -> date:
    return value.replace(day=1)


def days_in_month(value: date) -> int:
    return calendar.monthrange(value.year, value.month)[1]


def month_end(value: date) -> date:
    return value.replace(day=days_in_month(value))


def clamp_day(year: int, month: int, day: int) -> date:
    """Day ``day`` of the month, or its last day when the month is shorter."""
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(day, 1), last))


def add_frequency(value: date, frequency: Frequency | str) -> date:
    step = FREQUENCY_STEP.get(Frequency(frequency), FREQUENCY_STEP[Frequency.monthly])
    return value + step


def js_weekday(value: date) -> int:
    # Sunday = 0 ... Saturday = 6
    return (value.weekday() + 1) % 7


def ensure_aware(value: datetime, reference: datetime) -> datetime:
    if value.tzinfo is None and reference.tzinfo is not None:
        return value.replace(tzinfo=reference.tzinfo)
    return value
