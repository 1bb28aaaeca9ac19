from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from moedinha.models.enums import BaseIncomeMode, DistributionEditMode
from moedinha.schemas.common import ORMModel


class BucketIn(BaseModel):
    id: int | None = Field(default=None, description="Omit to create a new bucket.")
    name: str = Field(min_length=1, max_length=100)
    percent_bps: int = Field(ge=0, le=10000)
    color: str | None = Field(default=None, max_length=20)
    icon: str | None = Field(default=None, max_length=50)
    sort_order: int = 0
    is_flexible: bool = False


class DistributionSaveRequest(BaseModel):
    distribution_id: int
    name: str = Field(min_length=1, max_length=255)
    mode: DistributionEditMode = DistributionEditMode.auto
    base_income_mode: BaseIncomeMode = BaseIncomeMode.current_month
    planned_income: Decimal | None = None
    buckets: list[BucketIn]


class BucketOut(ORMModel):
    id: int
    name: str
    percent_bps: int
    color: str | None = None
    icon: str | None = None
    sort_order: int
    is_flexible: bool


class DistributionOut(ORMModel):
    id: int
    org_id: int
    name: str
    is_default: bool
    mode: DistributionEditMode
    base_income_mode: BaseIncomeMode
    planned_income: Decimal | None = None
    created_at: datetime
    buckets: list[BucketOut]


class BalanceRequest(BaseModel):
    buckets: list[BucketIn]
    edited_id: int
    new_bps: int = Field(ge=0, le=10000)
    strategy: str = Field(default="flexible", pattern="^(flexible|proportional)$")


class BalanceResponse(BaseModel):
    buckets: list[BucketIn]
    total_bps: int
    delta_bps: int
    valid: bool
