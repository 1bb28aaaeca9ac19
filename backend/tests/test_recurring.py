from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from moedinha.core.context import RequestContext, fixed_clock
from moedinha.db.base import Base
import moedinha.models  # noqa: F401
from moedinha.models.account import Account
from moedinha.models.enums import Frequency, TransactionStatus, TransactionType
from moedinha.models.org import Org
from moedinha.models.recurring import RecurringRule, RecurringRun
from moedinha.models.transaction import Transaction
from moedinha.schemas.recurring import RecurringRuleCreateRequest, RecurringRuleUpdateRequest
from moedinha.services.errors import NOT_FOUND, VALIDATION, OperationError
from moedinha.services.recurring import (
    RECURRING_SOURCE,
    create_recurring_rule,
    delete_recurring_rule,
    derive_schedule_days,
    list_recurring_rules,
    process_recurring_rules,
    toggle_recurring_rule,
    update_recurring_rule,
)


def _session() -> Session:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()


def _ctx(org_id: int, today: date) -> RequestContext:
    moment = datetime(today.year, today.month, today.day, 9, 0, tzinfo=timezone.utc)
    return RequestContext(user_id=None, org_id=org_id, clock=fixed_clock(moment))


def _org_and_account(db: Session) -> tuple[Org, Account]:
    org = Org(name="Casa", slug="casa")
    db.add(org)
    db.flush()
    account = Account(org_id=org.id, name="Conta", type="bank")
    db.add(account)
    db.flush()
    return org, account


def _create(db: Session, ctx: RequestContext, account: Account, **overrides) -> RecurringRule:
    payload = {
        "description": "Aluguel",
        "amount": Decimal("1200.00"),
        "account_id": account.id,
        "frequency": Frequency.monthly,
        "start_date": date(2024, 1, 15),
    }
    payload.update(overrides)
    rule = create_recurring_rule(db, ctx, RecurringRuleCreateRequest(**payload))
    assert not isinstance(rule, OperationError)
    return rule


def _generated(db: Session, org: Org) -> list[Transaction]:
    return list(
        db.scalars(select(Transaction).where(Transaction.org_id == org.id).order_by(Transaction.tx_date)).all()
    )


def test_schedule_days_follow_start_date() -> None:
    # 2024-01-15 is a Monday.
    assert derive_schedule_days(date(2024, 1, 15), Frequency.monthly) == (15, None)
    assert derive_schedule_days(date(2024, 1, 15), Frequency.weekly) == (None, 1)
    assert derive_schedule_days(date(2024, 1, 14), Frequency.weekly) == (None, 0)
    assert derive_schedule_days(date(2024, 1, 15), Frequency.yearly) == (None, None)


def test_first_tick_materializes_pending_expense_on_start_date() -> None:
    db = _session()
    org, account = _org_and_account(db)
    ctx = _ctx(org.id, date(2024, 1, 20))
    rule = _create(db, ctx, account)

    assert process_recurring_rules(db, ctx) == {"processed": 1}

    rows = _generated(db, org)
    assert len(rows) == 1
    tx = rows[0]
    assert tx.tx_date == date(2024, 1, 15)
    assert tx.description == "Aluguel (Automático)"
    assert tx.type == TransactionType.expense
    assert tx.status == TransactionStatus.pending
    assert tx.amount == Decimal("1200.00")
    assert tx.meta == {"recurring_rule_id": rule.id, "source": RECURRING_SOURCE}

    runs = db.scalars(select(RecurringRun).where(RecurringRun.rule_id == rule.id)).all()
    assert [run.run_at for run in runs] == [date(2024, 1, 15)]
    assert runs[0].transaction_id == tx.id


def test_same_day_rerun_does_not_duplicate() -> None:
    db = _session()
    org, account = _org_and_account(db)
    ctx = _ctx(org.id, date(2024, 1, 20))
    _create(db, ctx, account)

    process_recurring_rules(db, ctx)
    assert process_recurring_rules(db, ctx) == {"processed": 0}
    assert len(_generated(db, org)) == 1


def test_catch_up_advances_one_period_per_tick() -> None:
    db = _session()
    org, account = _org_and_account(db)
    ctx = _ctx(org.id, date(2024, 3, 20))
    _create(db, ctx, account)

    results = [process_recurring_rules(db, ctx)["processed"] for _ in range(4)]

    assert results == [1, 1, 1, 0]
    assert [tx.tx_date for tx in _generated(db, org)] == [
        date(2024, 1, 15),
        date(2024, 2, 15),
        date(2024, 3, 15),
    ]


def test_future_start_and_inactive_rules_are_skipped() -> None:
    db = _session()
    org, account = _org_and_account(db)
    ctx = _ctx(org.id, date(2024, 1, 20))
    _create(db, ctx, account, start_date=date(2024, 2, 1))
    paused = _create(db, ctx, account, description="Academia", start_date=date(2024, 1, 2))
    toggle_recurring_rule(db, ctx, paused.id, False)

    assert process_recurring_rules(db, ctx) == {"processed": 0}


def test_end_date_stops_materialization() -> None:
    db = _session()
    org, account = _org_and_account(db)
    ctx = _ctx(org.id, date(2024, 3, 20))
    _create(db, ctx, account, end_date=date(2024, 2, 20))

    for _ in range(4):
        process_recurring_rules(db, ctx)

    assert [tx.tx_date for tx in _generated(db, org)] == [date(2024, 1, 15), date(2024, 2, 15)]


def test_create_validates_amount_dates_and_account() -> None:
    db = _session()
    org, account = _org_and_account(db)
    ctx = _ctx(org.id, date(2024, 1, 20))
    base = {
        "description": "Internet",
        "amount": Decimal("99.90"),
        "account_id": account.id,
        "frequency": Frequency.monthly,
        "start_date": date(2024, 1, 10),
    }

    zero = create_recurring_rule(db, ctx, RecurringRuleCreateRequest(**{**base, "amount": Decimal("0")}))
    assert isinstance(zero, OperationError) and zero.code == VALIDATION

    backwards = create_recurring_rule(
        db, ctx, RecurringRuleCreateRequest(**{**base, "end_date": date(2024, 1, 1)})
    )
    assert isinstance(backwards, OperationError) and backwards.code == VALIDATION

    foreign = create_recurring_rule(db, ctx, RecurringRuleCreateRequest(**{**base, "account_id": 999}))
    assert isinstance(foreign, OperationError) and foreign.code == NOT_FOUND


def test_update_rederives_schedule_only_with_start_and_frequency() -> None:
    db = _session()
    org, account = _org_and_account(db)
    ctx = _ctx(org.id, date(2024, 1, 20))
    rule = _create(db, ctx, account)

    updated = update_recurring_rule(db, ctx, rule.id, RecurringRuleUpdateRequest(start_date=date(2024, 1, 20)))
    assert updated.start_date == date(2024, 1, 20)
    assert updated.day_of_month == 15

    updated = update_recurring_rule(
        db,
        ctx,
        rule.id,
        RecurringRuleUpdateRequest(start_date=date(2024, 1, 20), frequency=Frequency.weekly),
    )
    # 2024-01-20 is a Saturday.
    assert (updated.day_of_month, updated.day_of_week) == (None, 6)

    updated = update_recurring_rule(db, ctx, rule.id, RecurringRuleUpdateRequest(amount=Decimal("1300")))
    assert updated.amount == Decimal("1300.00")
    assert updated.description == "Aluguel"


def test_list_and_delete_are_scoped_to_org() -> None:
    db = _session()
    org, account = _org_and_account(db)
    ctx = _ctx(org.id, date(2024, 1, 20))
    rule = _create(db, ctx, account)
    other = ctx.for_org(org.id + 1)

    assert list_recurring_rules(db, other) == []
    missing = delete_recurring_rule(db, other, rule.id)
    assert isinstance(missing, OperationError) and missing.code == NOT_FOUND

    assert delete_recurring_rule(db, ctx, rule.id) is None
    assert list_recurring_rules(db, ctx) == []
