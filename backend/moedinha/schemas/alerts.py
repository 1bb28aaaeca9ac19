from datetime import date, datetime

from pydantic import BaseModel

from moedinha.models.enums import AlertSeverity
from moedinha.schemas.common import ORMModel


class AlertOut(ORMModel):
    id: int
    org_id: int
    month: date
    alert_code: str
    severity: AlertSeverity
    message: str
    context_json: dict
    cta_primary: str | None = None
    cta_secondary: str | None = None
    created_at: datetime
    acknowledged_at: datetime | None = None


class SnapshotAlertsResponse(BaseModel):
    month: date
    snapshots_updated: int
    alerts_emitted: int
    failed_orgs: list[int]


class DigestResponse(BaseModel):
    success: bool = True
    processed: int
    details: list[dict]
