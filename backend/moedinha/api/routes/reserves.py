from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from moedinha.api.deps import get_db, get_request_context, raise_for_error
from moedinha.core.context import RequestContext
from moedinha.core.security import WRITE_ROLES, require_roles
from moedinha.schemas.reserves import EmergencyTargetRequest, ReserveMetricsOut
from moedinha.services.reserves import get_emergency_metrics, update_emergency_goal_target


router = APIRouter(prefix="/reserves", tags=["reserves"])


@router.get("/emergency", response_model=ReserveMetricsOut)
def read_emergency_reserve(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return ReserveMetricsOut.model_validate(get_emergency_metrics(db, ctx))


@router.put("/emergency", response_model=ReserveMetricsOut)
def put_emergency_target(
    payload: EmergencyTargetRequest,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    require_roles(db, ctx, WRITE_ROLES)
    raise_for_error(update_emergency_goal_target(db, ctx, payload.target_amount, goal_id=payload.goal_id))
    db.commit()
    return ReserveMetricsOut.model_validate(get_emergency_metrics(db, ctx))
