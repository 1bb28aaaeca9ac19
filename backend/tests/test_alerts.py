from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from moedinha.core.context import RequestContext, fixed_clock
from moedinha.db.base import Base
import moedinha.models  # noqa: F401
from moedinha.models.account import Account
from moedinha.models.alert import Alert, AlertDefinition
from moedinha.models.distribution import Distribution, DistributionBucket
from moedinha.models.enums import AlertSeverity, BaseIncomeMode, TransactionType
from moedinha.models.org import Org
from moedinha.models.transaction import Transaction
from moedinha.services.alerts import acknowledge_alert, generate_alerts, list_alerts, render_message
from moedinha.services.errors import NOT_FOUND, OperationError
from moedinha.services.metrics import BucketMetrics, ExactFigures, MonthlyMetrics, compute_monthly_metrics
from moedinha.services.seed import ALERT_DEFINITIONS, seed_alert_definitions
from moedinha.utils.decimal_math import money, pct


NOW = datetime(2024, 4, 10, 12, 0, tzinfo=timezone.utc)
MARCH = date(2024, 3, 1)


def _session() -> Session:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()


def _org_named(db: Session, slug: str) -> Org:
    org = Org(name="Casa", slug=slug)
    db.add(org)
    db.flush()
    return org


def _org(db: Session) -> Org:
    return _org_named(db, "casa")


def _define(db: Session, *codes: str) -> None:
    for values in ALERT_DEFINITIONS:
        if values["code"] in codes:
            db.add(AlertDefinition(cooldown_hours=24, channels=["in_app"], **values))
    db.flush()


def _bucket(bucket_id: int, budget: str, spend: str) -> BucketMetrics:
    budget_value = money(budget)
    spend_value = money(spend)
    return BucketMetrics(
        bucket_id=bucket_id,
        budget=budget_value,
        spend=spend_value,
        spend_pct=pct(spend_value / budget_value * 100),
        pace_ideal=budget_value,
        projection=spend_value,
    )


def _paced(bucket_id: int, budget: str, spend: str, pace_ideal: str, projection: str) -> BucketMetrics:
    budget_value = money(budget)
    spend_value = money(spend)
    return BucketMetrics(
        bucket_id=bucket_id,
        budget=budget_value,
        spend=spend_value,
        spend_pct=pct(spend_value / budget_value * 100),
        pace_ideal=money(pace_ideal),
        projection=money(projection),
    )


def _prior_alert(db: Session, org: Org, code: str, spend_pct: float, hours_ago: int) -> None:
    db.add(
        Alert(
            org_id=org.id,
            month=MARCH,
            alert_code=code,
            severity=AlertSeverity.info,
            message="anterior",
            context_json={"spend_pct": spend_pct},
            created_at=NOW - timedelta(hours=hours_ago),
        )
    )
    db.flush()


def _metrics(*buckets: BucketMetrics) -> MonthlyMetrics:
    total_spend = money(sum((bucket.spend for bucket in buckets), Decimal(0)))
    return MonthlyMetrics(
        month=MARCH,
        base_income=money("4000.00"),
        base_income_mode=BaseIncomeMode.current_month,
        bucket_data=list(buckets),
        day_ratio=Decimal("1.000000"),
        total_spend=total_spend,
        total_budget=money("4000.00"),
    )


def _emitted(db: Session, org: Org) -> list[Alert]:
    return list(db.scalars(select(Alert).where(Alert.org_id == org.id).order_by(Alert.id)).all())


def test_seed_alert_definitions_is_idempotent() -> None:
    db = _session()
    assert seed_alert_definitions(db) == len(ALERT_DEFINITIONS)
    assert seed_alert_definitions(db) == 0


def test_seventy_percent_fires_only_first_threshold() -> None:
    db = _session()
    org = _org(db)
    _define(db, "bucket_70", "bucket_90", "bucket_over")
    ctx = RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(NOW))

    emitted = generate_alerts(db, ctx, MARCH, _metrics(_bucket(1, "2000", "1400")), {1: "Necessidades"})

    alerts = _emitted(db, org)
    assert emitted == 1
    assert [alert.alert_code for alert in alerts] == ["bucket_70"]
    assert alerts[0].message == "Você já usou 70% do bucket Necessidades este mês."
    assert alerts[0].context_json["bucket"] == "Necessidades"
    assert alerts[0].severity == AlertSeverity.info


def test_over_budget_fires_every_bucket_threshold() -> None:
    db = _session()
    org = _org(db)
    _define(db, "bucket_70", "bucket_90", "bucket_over")
    ctx = RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(NOW))

    generate_alerts(db, ctx, MARCH, _metrics(_bucket(1, "2000", "2100")), {1: "Necessidades"})

    codes = [alert.alert_code for alert in _emitted(db, org)]
    assert codes == ["bucket_70", "bucket_90", "bucket_over"]


def test_first_bucket_in_sort_order_wins() -> None:
    db = _session()
    org = _org(db)
    _define(db, "bucket_70")
    ctx = RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(NOW))
    metrics = _metrics(_bucket(1, "2000", "100"), _bucket(2, "1200", "1000"), _bucket(3, "800", "700"))

    generate_alerts(db, ctx, MARCH, metrics, {1: "Necessidades", 2: "Desejos", 3: "Metas"})

    alerts = _emitted(db, org)
    assert len(alerts) == 1
    assert alerts[0].context_json["bucket"] == "Desejos"


def test_cooldown_blocks_repeat_but_not_other_rules() -> None:
    db = _session()
    org = _org(db)
    _define(db, "bucket_70", "bucket_90")
    db.add(
        Alert(
            org_id=org.id,
            month=MARCH,
            alert_code="bucket_70",
            severity=AlertSeverity.info,
            message="anterior",
            context_json={"spend_pct": 72.0},
            created_at=NOW - timedelta(hours=2),
        )
    )
    db.flush()
    ctx = RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(NOW))

    emitted = generate_alerts(db, ctx, MARCH, _metrics(_bucket(1, "2000", "1900")), {1: "Necessidades"})

    assert emitted == 1
    assert [alert.alert_code for alert in _emitted(db, org)] == ["bucket_70", "bucket_90"]


def test_hysteresis_suppresses_small_moves_after_cooldown() -> None:
    db = _session()
    org = _org(db)
    _define(db, "bucket_70")
    db.add(
        Alert(
            org_id=org.id,
            month=MARCH,
            alert_code="bucket_70",
            severity=AlertSeverity.info,
            message="anterior",
            context_json={"spend_pct": 72.0},
            created_at=NOW - timedelta(hours=48),
        )
    )
    db.flush()
    ctx = RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(NOW))

    assert generate_alerts(db, ctx, MARCH, _metrics(_bucket(1, "2000", "1480")), {1: "Necessidades"}) == 0
    assert generate_alerts(db, ctx, MARCH, _metrics(_bucket(1, "2000", "1600")), {1: "Necessidades"}) == 1


def test_previous_month_alert_does_not_cool_down_current_month() -> None:
    db = _session()
    org = _org(db)
    _define(db, "bucket_70")
    db.add(
        Alert(
            org_id=org.id,
            month=date(2024, 2, 1),
            alert_code="bucket_70",
            severity=AlertSeverity.info,
            message="fevereiro",
            context_json={"spend_pct": 71.0},
            created_at=NOW - timedelta(hours=1),
        )
    )
    db.flush()
    ctx = RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(NOW))

    assert generate_alerts(db, ctx, MARCH, _metrics(_bucket(1, "2000", "1420")), {1: "Necessidades"}) == 1


def test_org_level_rules_and_unsupported_code() -> None:
    db = _session()
    org = _org(db)
    _define(db, "concentration_bucket", "concentration_top5", "pending_pct", "pending_count")
    ctx = RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(NOW))
    metrics = _metrics(_bucket(1, "2000", "900"), _bucket(2, "1200", "100"))

    generate_alerts(db, ctx, MARCH, metrics, {1: "Necessidades", 2: "Desejos"}, pending_count=3, pending_pct=25)

    alerts = {alert.alert_code: alert for alert in _emitted(db, org)}
    assert set(alerts) == {"concentration_bucket", "pending_pct"}
    assert alerts["concentration_bucket"].message == "Um único bucket concentra 90% dos gastos do mês."
    assert alerts["pending_pct"].message == "25% dos gastos do mês ainda estão sem bucket."


def test_render_message_fills_missing_keys_with_empty_string() -> None:
    template = "{bucket} em {spend_pct}% ({desconhecido})"
    assert render_message(template, {"bucket": "Metas", "spend_pct": 91.5}) == "Metas em 91.5% ()"
    assert render_message("{bucket}", {"bucket": None}) == ""


def test_list_and_acknowledge_alerts() -> None:
    db = _session()
    org = _org(db)
    _define(db, "bucket_70")
    ctx = RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(NOW))
    generate_alerts(db, ctx, MARCH, _metrics(_bucket(1, "2000", "1500")), {1: "Necessidades"})

    listed = list_alerts(db, ctx, date(2024, 3, 20))
    assert len(listed) == 1
    acked = acknowledge_alert(db, ctx, listed[0].id)
    assert not isinstance(acked, OperationError)
    assert acked.acknowledged_at == NOW

    missing = acknowledge_alert(db, ctx, 999)
    assert isinstance(missing, OperationError)
    assert missing.code == NOT_FOUND
    assert list_alerts(db, ctx, date(2024, 2, 1)) == []


def test_hysteresis_on_first_bucket_moves_to_next_matching_bucket() -> None:
    db = _session()
    org = _org(db)
    _define(db, "bucket_70")
    _prior_alert(db, org, "bucket_70", 72.0, hours_ago=48)
    ctx = RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(NOW))
    metrics = _metrics(_bucket(1, "2000", "1440"), _bucket(2, "1000", "950"))

    emitted = generate_alerts(db, ctx, MARCH, metrics, {1: "Necessidades", 2: "Desejos"})

    alerts = [alert for alert in _emitted(db, org) if alert.message != "anterior"]
    assert emitted == 1
    assert [alert.context_json["bucket"] for alert in alerts] == ["Desejos"]
    assert alerts[0].message == "Você já usou 95% do bucket Desejos este mês."


def test_pace_rules_fire_on_overrun_ratio() -> None:
    db = _session()
    org = _org(db)
    _define(db, "pace_15", "pace_30")
    ctx = RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(NOW))

    generate_alerts(db, ctx, MARCH, _metrics(_paced(1, "2000", "1150", "1000", "1150")), {1: "Necessidades"})

    alerts = _emitted(db, org)
    assert [alert.alert_code for alert in alerts] == ["pace_15"]
    assert alerts[0].context_json["pace_ratio"] == 0.15
    assert alerts[0].message == "Necessidades está gastando acima do ritmo ideal do mês."

    other = _org_named(db, "outra")
    other_ctx = RequestContext(user_id=None, org_id=other.id, clock=fixed_clock(NOW))
    generate_alerts(db, other_ctx, MARCH, _metrics(_paced(1, "2000", "1300", "1000", "1300")), {1: "Metas"})
    assert [alert.alert_code for alert in _emitted(db, other)] == ["pace_15", "pace_30"]


def test_pace_rules_stay_quiet_without_ideal_pace() -> None:
    db = _session()
    org = _org(db)
    _define(db, "pace_15", "pace_30")
    ctx = RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(NOW))

    assert generate_alerts(db, ctx, MARCH, _metrics(_paced(1, "2000", "500", "0", "500")), {1: "Necessidades"}) == 0


@pytest.mark.parametrize(("projection", "expected"), [("900.00", 1), ("899.99", 0)])
def test_projection_fires_from_ninety_percent_of_budget(projection: str, expected: int) -> None:
    db = _session()
    org = _org(db)
    _define(db, "projection")
    ctx = RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(NOW))

    emitted = generate_alerts(db, ctx, MARCH, _metrics(_paced(1, "1000", "450", "500", projection)), {1: "Necessidades"})

    assert emitted == expected
    if expected:
        assert _emitted(db, org)[0].message == "No ritmo atual, Necessidades deve fechar o mês em 90% do orçamento."


@pytest.mark.parametrize(("pending_count", "expected"), [(19, 0), (20, 1)])
def test_pending_count_fires_from_twenty_entries(pending_count: int, expected: int) -> None:
    db = _session()
    org = _org(db)
    _define(db, "pending_count")
    ctx = RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(NOW))

    emitted = generate_alerts(
        db, ctx, MARCH, _metrics(_bucket(1, "2000", "100")), {1: "Necessidades"}, pending_count=pending_count
    )

    assert emitted == expected


def test_thresholds_use_unrounded_spend_pct() -> None:
    db = _session()
    org = _org(db)
    _define(db, "bucket_70")
    ctx = RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(NOW))
    almost = Decimal("69.9999996")
    bucket = BucketMetrics(
        bucket_id=1,
        budget=money("2000"),
        spend=money("1400"),
        spend_pct=pct(almost),
        pace_ideal=money("2000"),
        projection=money("1400"),
        exact=ExactFigures(budget=Decimal("2000"), spend_pct=almost, pace_ideal=Decimal("2000"), projection=Decimal("1400")),
    )

    assert bucket.spend_pct == Decimal("70.000000")
    assert generate_alerts(db, ctx, MARCH, _metrics(bucket), {1: "Necessidades"}) == 0


def test_month_metrics_feed_alerts_end_to_end() -> None:
    db = _session()
    org = _org(db)
    seed_alert_definitions(db)
    account = Account(org_id=org.id, name="Conta", type="bank")
    distribution = Distribution(org_id=org.id, name="50/30/20", is_default=True)
    db.add_all([account, distribution])
    db.flush()
    needs = DistributionBucket(distribution_id=distribution.id, name="Necessidades", percent_bps=5000, sort_order=0)
    db.add_all(
        [
            needs,
            DistributionBucket(distribution_id=distribution.id, name="Desejos", percent_bps=3000, sort_order=1),
            DistributionBucket(distribution_id=distribution.id, name="Metas", percent_bps=2000, sort_order=2),
        ]
    )
    db.flush()
    db.add_all(
        [
            Transaction(
                org_id=org.id,
                account_id=account.id,
                type=TransactionType.income,
                amount=money("4000.00"),
                tx_date=date(2024, 3, 5),
            ),
            Transaction(
                org_id=org.id,
                account_id=account.id,
                type=TransactionType.expense,
                amount=money("1500.00"),
                tx_date=date(2024, 3, 8),
                bucket_id=needs.id,
            ),
        ]
    )
    db.flush()
    ctx = RequestContext(user_id=None, org_id=org.id, clock=fixed_clock(NOW))

    metrics = compute_monthly_metrics(db, ctx, MARCH)
    emitted = generate_alerts(db, ctx, MARCH, metrics, {needs.id: "Necessidades"})

    alerts = {alert.alert_code: alert for alert in _emitted(db, org)}
    assert metrics.bucket_data[0].spend_pct == Decimal("75")
    assert emitted == 2
    assert set(alerts) == {"bucket_70", "concentration_bucket"}
    assert alerts["bucket_70"].message == "Você já usou 75% do bucket Necessidades este mês."
