from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel

from moedinha.models.enums import BaseIncomeMode
from moedinha.schemas.common import ORMModel


class BucketMetricsOut(BaseModel):
    bucket_id: int
    budget: Decimal
    spend: Decimal
    spend_pct: Decimal
    pace_ideal: Decimal
    projection: Decimal


class MonthlyMetricsOut(BaseModel):
    month: date
    base_income: Decimal
    base_income_mode: BaseIncomeMode
    bucket_data: list[BucketMetricsOut]
    day_ratio: Decimal
    total_spend: Decimal
    total_budget: Decimal
    alerts_emitted: int = 0


class SnapshotOut(ORMModel):
    id: int
    org_id: int
    month: date
    base_income: Decimal
    base_income_mode: BaseIncomeMode
    bucket_data: list[dict]
    day_ratio: Decimal
    total_spend: Decimal
    total_budget: Decimal
    computed_at: datetime
