from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import JSON, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from moedinha.db.base import Base
from moedinha.models.enums import AlertSeverity


class AlertDefinition(Base):
    __tablename__ = "alert_definitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    severity: Mapped[AlertSeverity] = mapped_column(
        Enum(AlertSeverity, name="alert_severity"),
        default=AlertSeverity.info,
        nullable=False,
    )
    cooldown_hours: Mapped[int] = mapped_column(Integer, default=24, nullable=False)
    hysteresis_pct: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    message_template: Mapped[str] = mapped_column(Text, nullable=False)
    cta_primary: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cta_secondary: Mapped[str | None] = mapped_column(String(100), nullable=True)
    channels: Mapped[list] = mapped_column(JSON, nullable=False, default=list)


class Alert(Base):
    __tablename__ = "alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    org_id: Mapped[int] = mapped_column(
        ForeignKey("orgs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    month: Mapped[date] = mapped_column(Date, nullable=False)
    alert_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    severity: Mapped[AlertSeverity] = mapped_column(
        Enum(AlertSeverity, name="alert_severity"),
        nullable=False,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    context_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    cta_primary: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cta_secondary: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    snoozed_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
