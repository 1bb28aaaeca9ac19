from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from moedinha.api.deps import get_db
from moedinha.core.security import require_cron_secret
from moedinha.schemas.alerts import DigestResponse, SnapshotAlertsResponse
from moedinha.services.jobs import run_snapshot_alerts
from moedinha.services.notifications import send_daily_digests


router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(require_cron_secret)])


@router.get("/snapshot-alerts", response_model=SnapshotAlertsResponse)
def cron_snapshot_alerts(db: Session = Depends(get_db)):
    summary = run_snapshot_alerts(db)
    return SnapshotAlertsResponse(
        month=summary.month,
        snapshots_updated=summary.snapshots_updated,
        alerts_emitted=summary.alerts_emitted,
        failed_orgs=summary.failed_orgs,
    )


@router.get("/telegram", response_model=DigestResponse)
def cron_telegram(db: Session = Depends(get_db)):
    summary = send_daily_digests(db)
    return DigestResponse(processed=summary.processed, details=summary.details)
