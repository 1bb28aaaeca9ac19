from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from moedinha.api.deps import get_db, get_request_context, raise_for_error
from moedinha.core.context import RequestContext
from moedinha.core.security import WRITE_ROLES, require_roles
from moedinha.schemas.distribution import (
    BalanceRequest,
    BalanceResponse,
    BucketIn,
    DistributionOut,
    DistributionSaveRequest,
)
from moedinha.services.allocation import BucketShare, auto_balance, delta, validate_sum
from moedinha.services.distribution import create_default_distribution, get_distribution, save_distribution
from moedinha.services.errors import not_found


router = APIRouter(prefix="/distribution", tags=["distribution"])


@router.get("", response_model=DistributionOut | None)
def read_distribution(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return get_distribution(db, ctx)


@router.put("", response_model=DistributionOut)
def put_distribution(
    payload: DistributionSaveRequest,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    require_roles(db, ctx, WRITE_ROLES)
    distribution = raise_for_error(save_distribution(db, ctx, payload))
    db.commit()
    db.refresh(distribution)
    return distribution


@router.post("/default", response_model=DistributionOut, status_code=status.HTTP_201_CREATED)
def post_default_distribution(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    require_roles(db, ctx, WRITE_ROLES)
    distribution = raise_for_error(create_default_distribution(db, ctx))
    db.commit()
    db.refresh(distribution)
    return distribution


@router.post("/balance", response_model=BalanceResponse)
def balance_buckets(payload: BalanceRequest):
    # Unsaved buckets have no id yet, so shares are keyed by position.
    edited = next(
        (position for position, bucket in enumerate(payload.buckets) if bucket.id == payload.edited_id),
        None,
    )
    if edited is None:
        raise_for_error(not_found("Bucket editado não está na lista."))
    shares = [
        BucketShare(id=position, percent_bps=bucket.percent_bps, is_flexible=bucket.is_flexible)
        for position, bucket in enumerate(payload.buckets)
    ]
    balanced = auto_balance(shares, edited, payload.new_bps, payload.strategy)
    rows = [
        BucketIn(**{**bucket.model_dump(), "percent_bps": share.percent_bps})
        for bucket, share in zip(payload.buckets, balanced)
    ]
    return BalanceResponse(
        buckets=rows,
        total_bps=sum(share.percent_bps for share in balanced),
        delta_bps=delta(balanced),
        valid=validate_sum(balanced),
    )
