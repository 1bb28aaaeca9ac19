from decimal import Decimal

from pydantic import BaseModel

from moedinha.schemas.common import ORMModel


class ReserveAccountOut(ORMModel):
    id: int
    name: str
    type: str
    initial_balance: Decimal
    liquidity_type: str | None = None


class ReserveMetricsOut(ORMModel):
    total_accumulated: Decimal
    target_amount: Decimal
    progress_percentage: Decimal
    months_covered: Decimal
    liquidity_breakdown: dict[str, Decimal]
    accounts: list[ReserveAccountOut]
    goal_id: int | None = None


class EmergencyTargetRequest(BaseModel):
    target_amount: Decimal
    goal_id: int | None = None
