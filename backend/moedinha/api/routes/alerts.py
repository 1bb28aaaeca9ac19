from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from moedinha.api.deps import get_db, get_request_context, raise_for_error
from moedinha.core.context import RequestContext
from moedinha.schemas.alerts import AlertOut
from moedinha.services.alerts import acknowledge_alert, list_alerts


router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("", response_model=list[AlertOut])
def get_alerts(
    month: date | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return list_alerts(db, ctx, month)


@router.post("/{alert_id}/ack", response_model=AlertOut)
def ack_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    alert = raise_for_error(acknowledge_alert(db, ctx, alert_id))
    db.commit()
    db.refresh(alert)
    return alert
