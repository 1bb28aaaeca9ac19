from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import JSON, Date, DateTime, Enum, ForeignKey, Integer, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from moedinha.db.base import Base
from moedinha.models.enums import BaseIncomeMode


class MonthSnapshot(Base):
    """Cached per-month bucket metrics; overwritten on every recomputation."""

    __tablename__ = "month_snapshots"
    __table_args__ = (
        UniqueConstraint("org_id", "month", name="uq_month_snapshots_org_month"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    org_id: Mapped[int] = mapped_column(
        ForeignKey("orgs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    month: Mapped[date] = mapped_column(Date, nullable=False)
    base_income: Mapped[Decimal] = mapped_column(Numeric(24, 2), default=0, nullable=False)
    base_income_mode: Mapped[BaseIncomeMode] = mapped_column(
        Enum(BaseIncomeMode, name="base_income_mode"),
        nullable=False,
    )
    # [{bucket_id, budget, spend, spend_pct, pace_ideal, projection}, ...]
    bucket_data: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    day_ratio: Mapped[Decimal | None] = mapped_column(Numeric(12, 6), nullable=True)
    total_spend: Mapped[Decimal | None] = mapped_column(Numeric(24, 2), nullable=True)
    total_budget: Mapped[Decimal | None] = mapped_column(Numeric(24, 2), nullable=True)
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
