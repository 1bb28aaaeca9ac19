from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from moedinha.core.context import RequestContext
from moedinha.models.distribution import Distribution, DistributionBucket
from moedinha.models.enums import BaseIncomeMode, DistributionEditMode
from moedinha.schemas.distribution import DistributionSaveRequest
from moedinha.services.allocation import MAX_BUCKETS, MIN_BUCKETS, BucketShare, validate_sum
from moedinha.services.audit import log_audit
from moedinha.services.errors import OperationError, invalid, not_found
from moedinha.utils.decimal_math import money


DEFAULT_DISTRIBUTION_NAME = "Padrão 50/30/20"
DEFAULT_BUCKETS = [
    {"name": "Necessidades", "percent_bps": 5000, "color": "#2E9F62", "icon": "home", "sort_order": 0, "is_flexible": False},
    {"name": "Desejos", "percent_bps": 3000, "color": "#F1C31E", "icon": "gift", "sort_order": 1, "is_flexible": True},
    {"name": "Metas", "percent_bps": 2000, "color": "#4D79AE", "icon": "target", "sort_order": 2, "is_flexible": False},
]


@dataclass(frozen=True)
class ActiveDistribution:
    distribution: Distribution
    buckets: list[DistributionBucket]


def _resolve_distribution(db: Session, org_id: int) -> Distribution | None:
    default = db.scalar(
        select(Distribution)
        .where(Distribution.org_id == org_id, Distribution.is_default.is_(True))
        .order_by(Distribution.id)
        .limit(1)
    )
    if default is not None:
        return default
    return db.scalar(
        select(Distribution)
        .where(Distribution.org_id == org_id)
        .order_by(Distribution.created_at.desc(), Distribution.id.desc())
        .limit(1)
    )


def _buckets_for(db: Session, distribution_id: int) -> list[DistributionBucket]:
    return list(
        db.scalars(
            select(DistributionBucket)
            .where(DistributionBucket.distribution_id == distribution_id)
            .order_by(DistributionBucket.sort_order, DistributionBucket.id)
        ).all()
    )


def get_active_distribution(db: Session, org_id: int) -> ActiveDistribution | None:
    """Default distribution of the org, else its most recent one; ``None`` without buckets."""
    distribution = _resolve_distribution(db, org_id)
    if distribution is None:
        return None
    buckets = _buckets_for(db, distribution.id)
    if not buckets:
        return None
    return ActiveDistribution(distribution=distribution, buckets=buckets)


def get_distribution(db: Session, ctx: RequestContext) -> Distribution | None:
    return _resolve_distribution(db, ctx.org_id)


def save_distribution(
    db: Session,
    ctx: RequestContext,
    payload: DistributionSaveRequest,
) -> Distribution | OperationError:
    shares = [BucketShare(id=bucket.id, percent_bps=bucket.percent_bps) for bucket in payload.buckets]
    if not validate_sum(shares):
        return invalid("A soma dos percentuais deve ser 100%. Ajuste ou use Normalizar.")
    if len(payload.buckets) < MIN_BUCKETS or len(payload.buckets) > MAX_BUCKETS:
        return invalid(f"É necessário entre {MIN_BUCKETS} e {MAX_BUCKETS} buckets.")

    distribution = db.scalar(
        select(Distribution).where(
            Distribution.id == payload.distribution_id,
            Distribution.org_id == ctx.org_id,
        )
    )
    if distribution is None:
        return not_found("Distribuição não encontrada.")

    before_state = {
        "name": distribution.name,
        "buckets": {bucket.id: bucket.percent_bps for bucket in _buckets_for(db, distribution.id)},
    }

    distribution.name = payload.name
    distribution.mode = DistributionEditMode(payload.mode)
    distribution.base_income_mode = BaseIncomeMode(payload.base_income_mode)
    distribution.planned_income = (
        money(payload.planned_income) if payload.planned_income is not None else None
    )

    current = {bucket.id: bucket for bucket in _buckets_for(db, distribution.id)}
    incoming_ids = {bucket.id for bucket in payload.buckets if bucket.id is not None}
    to_delete = [bucket_id for bucket_id in current if bucket_id not in incoming_ids]
    for bucket_id in to_delete:
        db.delete(current.pop(bucket_id))

    for item in payload.buckets:
        row = current.get(item.id) if item.id is not None else None
        if row is None:
            row = DistributionBucket(distribution_id=distribution.id)
            db.add(row)
        row.name = item.name
        row.percent_bps = item.percent_bps
        row.color = item.color
        row.icon = item.icon
        row.sort_order = item.sort_order
        row.is_flexible = item.is_flexible

    db.flush()
    log_audit(
        db,
        actor_user_id=ctx.user_id,
        org_id=ctx.org_id,
        action="distribution.save",
        entity_type="distribution",
        entity_id=str(distribution.id),
        before_state=before_state,
        after_state={
            "name": distribution.name,
            "buckets": {bucket.id: bucket.percent_bps for bucket in _buckets_for(db, distribution.id)},
        },
    )
    db.expire(distribution, ["buckets"])
    return distribution


def create_default_distribution(db: Session, ctx: RequestContext) -> Distribution | OperationError:
    existing = db.scalar(select(Distribution.id).where(Distribution.org_id == ctx.org_id).limit(1))
    if existing is not None:
        return invalid("Já existe uma distribuição.")

    distribution = Distribution(
        org_id=ctx.org_id,
        name=DEFAULT_DISTRIBUTION_NAME,
        is_default=True,
        mode=DistributionEditMode.auto,
        base_income_mode=BaseIncomeMode.current_month,
        planned_income=None,
    )
    db.add(distribution)
    db.flush()
    for values in DEFAULT_BUCKETS:
        db.add(DistributionBucket(distribution_id=distribution.id, **values))
    db.flush()
    log_audit(
        db,
        actor_user_id=ctx.user_id,
        org_id=ctx.org_id,
        action="distribution.create_default",
        entity_type="distribution",
        entity_id=str(distribution.id),
        after_state={"name": distribution.name},
    )
    db.expire(distribution, ["buckets"])
    return distribution
