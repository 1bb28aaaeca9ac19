from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from moedinha.models.enums import Frequency
from moedinha.schemas.common import ORMModel


class RecurringRuleCreateRequest(BaseModel):
    description: str = Field(min_length=1, max_length=255)
    amount: Decimal = Field(description="Positive amount; generated transactions are expenses.")
    account_id: int
    category_id: int | None = None
    frequency: Frequency
    start_date: date
    end_date: date | None = None


class RecurringRuleUpdateRequest(BaseModel):
    description: str | None = Field(default=None, min_length=1, max_length=255)
    amount: Decimal | None = None
    account_id: int | None = None
    category_id: int | None = None
    frequency: Frequency | None = None
    start_date: date | None = None
    end_date: date | None = None


class RecurringRuleToggleRequest(BaseModel):
    is_active: bool


class RecurringRuleOut(ORMModel):
    id: int
    org_id: int
    description: str
    amount: Decimal
    account_id: int
    category_id: int | None = None
    frequency: Frequency
    day_of_month: int | None = None
    day_of_week: int | None = None
    start_date: date
    end_date: date | None = None
    is_active: bool
    created_at: datetime


class ProcessRecurringResponse(BaseModel):
    processed: int
