from datetime import datetime, timezone

from fastapi import HTTPException
from pydantic import ValidationError
import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from moedinha.api.routes.distribution import balance_buckets
from moedinha.core.context import RequestContext, fixed_clock
from moedinha.db.base import Base
import moedinha.models  # noqa: F401
from moedinha.models.audit import AuditLog
from moedinha.models.distribution import Distribution, DistributionBucket
from moedinha.models.org import Org
from moedinha.schemas.distribution import BalanceRequest, BucketIn, DistributionSaveRequest
from moedinha.services.distribution import (
    DEFAULT_BUCKETS,
    create_default_distribution,
    get_active_distribution,
    save_distribution,
)
from moedinha.services.errors import NOT_FOUND, VALIDATION, OperationError


def _session() -> Session:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()


def _ctx(db: Session) -> RequestContext:
    org = Org(name="Casa", slug="casa")
    db.add(org)
    db.flush()
    moment = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)
    return RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(moment))


def _bucket_rows(db: Session, distribution_id: int) -> list[tuple[str, int]]:
    rows = db.scalars(
        select(DistributionBucket)
        .where(DistributionBucket.distribution_id == distribution_id)
        .order_by(DistributionBucket.sort_order)
    ).all()
    return [(row.name, row.percent_bps) for row in rows]


def test_default_distribution_is_50_30_20() -> None:
    db = _session()
    ctx = _ctx(db)

    distribution = create_default_distribution(db, ctx)

    assert not isinstance(distribution, OperationError)
    assert distribution.is_default is True
    assert _bucket_rows(db, distribution.id) == [
        ("Necessidades", 5000),
        ("Desejos", 3000),
        ("Metas", 2000),
    ]
    assert sum(bucket["percent_bps"] for bucket in DEFAULT_BUCKETS) == 10000

    again = create_default_distribution(db, ctx)
    assert isinstance(again, OperationError) and again.code == VALIDATION


def test_active_distribution_falls_back_to_latest_when_no_default() -> None:
    db = _session()
    ctx = _ctx(db)
    older = Distribution(org_id=ctx.org_id, name="Antiga", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
    newer = Distribution(org_id=ctx.org_id, name="Nova", created_at=datetime(2024, 2, 1, tzinfo=timezone.utc))
    db.add_all([older, newer])
    db.flush()
    db.add_all(
        [
            DistributionBucket(distribution_id=newer.id, name="A", percent_bps=6000, sort_order=1),
            DistributionBucket(distribution_id=newer.id, name="B", percent_bps=4000, sort_order=0),
        ]
    )
    db.flush()

    active = get_active_distribution(db, ctx.org_id)

    assert active.distribution.id == newer.id
    assert [bucket.name for bucket in active.buckets] == ["B", "A"]


def test_distribution_without_buckets_is_not_active() -> None:
    db = _session()
    ctx = _ctx(db)
    db.add(Distribution(org_id=ctx.org_id, name="Vazia", is_default=True))
    db.flush()
    assert get_active_distribution(db, ctx.org_id) is None


def test_save_replaces_buckets_and_writes_audit() -> None:
    db = _session()
    ctx = _ctx(db)
    distribution = create_default_distribution(db, ctx)
    current = db.scalars(
        select(DistributionBucket).where(DistributionBucket.distribution_id == distribution.id)
    ).all()
    needs = next(bucket for bucket in current if bucket.name == "Necessidades")

    payload = DistributionSaveRequest(
        distribution_id=distribution.id,
        name="60/40",
        buckets=[
            BucketIn(id=needs.id, name="Essenciais", percent_bps=6000, sort_order=0),
            BucketIn(name="Livre", percent_bps=4000, sort_order=1, is_flexible=True),
        ],
    )
    saved = save_distribution(db, ctx, payload)

    assert not isinstance(saved, OperationError)
    assert saved.name == "60/40"
    assert _bucket_rows(db, distribution.id) == [("Essenciais", 6000), ("Livre", 4000)]
    audit = db.scalar(select(AuditLog).where(AuditLog.action == "distribution.save"))
    assert audit.entity_id == str(distribution.id)


def test_save_rejects_bad_sum_and_bucket_count() -> None:
    db = _session()
    ctx = _ctx(db)
    distribution = create_default_distribution(db, ctx)

    short = DistributionSaveRequest(
        distribution_id=distribution.id,
        name="Errada",
        buckets=[
            BucketIn(name="A", percent_bps=5000),
            BucketIn(name="B", percent_bps=4000),
        ],
    )
    result = save_distribution(db, ctx, short)
    assert isinstance(result, OperationError) and result.code == VALIDATION

    single = DistributionSaveRequest(
        distribution_id=distribution.id,
        name="Uma",
        buckets=[BucketIn(name="Tudo", percent_bps=10000)],
    )
    result = save_distribution(db, ctx, single)
    assert isinstance(result, OperationError) and result.code == VALIDATION

    missing = DistributionSaveRequest(
        distribution_id=999,
        name="Outra",
        buckets=[BucketIn(name="A", percent_bps=5000), BucketIn(name="B", percent_bps=5000)],
    )
    result = save_distribution(db, ctx, missing)
    assert isinstance(result, OperationError) and result.code == NOT_FOUND


def test_balance_keeps_unsaved_buckets_apart() -> None:
    payload = BalanceRequest(
        buckets=[
            BucketIn(id=7, name="Necessidades", percent_bps=5000),
            BucketIn(name="Lazer", percent_bps=3000),
            BucketIn(name="Viagem", percent_bps=2000),
        ],
        edited_id=7,
        new_bps=6000,
        strategy="proportional",
    )

    response = balance_buckets(payload)

    assert [(bucket.name, bucket.percent_bps) for bucket in response.buckets] == [
        ("Necessidades", 6000),
        ("Lazer", 2400),
        ("Viagem", 1600),
    ]
    assert response.valid is True
    assert response.delta_bps == 0


def test_balance_rejects_out_of_range_and_unknown_bucket() -> None:
    buckets = [BucketIn(id=1, name="A", percent_bps=5000), BucketIn(id=2, name="B", percent_bps=5000)]

    with pytest.raises(ValidationError):
        BalanceRequest(buckets=buckets, edited_id=1, new_bps=12000, strategy="proportional")

    with pytest.raises(HTTPException) as excinfo:
        balance_buckets(BalanceRequest(buckets=buckets, edited_id=99, new_bps=1000))
    assert excinfo.value.status_code == 404
