from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from moedinha.db.base import Base
from moedinha.models.enums import BaseIncomeMode, DistributionEditMode


class Distribution(Base):
    __tablename__ = "distributions"
    __table_args__ = (
        Index(
            "uq_distributions_org_default",
            "org_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    org_id: Mapped[int] = mapped_column(
        ForeignKey("orgs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    mode: Mapped[DistributionEditMode] = mapped_column(
        Enum(DistributionEditMode, name="distribution_edit_mode"),
        default=DistributionEditMode.auto,
        nullable=False,
    )
    base_income_mode: Mapped[BaseIncomeMode] = mapped_column(
        Enum(BaseIncomeMode, name="base_income_mode"),
        default=BaseIncomeMode.current_month,
        nullable=False,
    )
    planned_income: Mapped[Decimal | None] = mapped_column(Numeric(24, 2), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    buckets: Mapped[list["DistributionBucket"]] = relationship(
        "DistributionBucket",
        back_populates="distribution",
        cascade="all, delete-orphan",
        order_by="DistributionBucket.sort_order",
    )


class DistributionBucket(Base):
    __tablename__ = "distribution_buckets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    distribution_id: Mapped[int] = mapped_column(
        ForeignKey("distributions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    percent_bps: Mapped[int] = mapped_column(Integer, nullable=False)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_flexible: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    distribution: Mapped["Distribution"] = relationship("Distribution", back_populates="buckets")
