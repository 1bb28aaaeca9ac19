"""Recurring rules and their materialization into pending expenses.

Each call to ``process_recurring_rules`` is one scheduler tick. Per active rule
the tick runs ``DueCheck`` (find the next due date from the last successful run,
or ``start_date`` when there is none) and, if that date is not in the future,
``Materialize`` (insert the pending expense dated at the due date and log the
run). A rule therefore advances at most one period per tick; catching up on
missed periods takes as many ticks as there are periods.
"""

from __future__ import annotations

from datetime import date
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from moedinha.core.context import RequestContext
from moedinha.models.account import Account
from moedinha.models.enums import Frequency, TransactionStatus, TransactionType
from moedinha.models.recurring import RecurringRule, RecurringRun
from moedinha.models.transaction import Transaction
from moedinha.schemas.recurring import RecurringRuleCreateRequest, RecurringRuleUpdateRequest
from moedinha.services.audit import log_audit
from moedinha.services.errors import OperationError, invalid, not_found
from moedinha.utils.dates import add_frequency, js_weekday
from moedinha.utils.decimal_math import money


logger = logging.getLogger(__name__)

RECURRING_SOURCE = "recurring_worker"
AUTO_SUFFIX = " (Automático)"
_REQUIRED_FIELDS = {"description", "amount", "account_id", "frequency", "start_date"}


def derive_schedule_days(start_date: date, frequency: Frequency | str) -> tuple[int | None, int | None]:
    """(day_of_month, day_of_week) implied by the start date; weekday is Sunday=0."""
    frequency = Frequency(frequency)
    day_of_month = start_date.day if frequency == Frequency.monthly else None
    day_of_week = js_weekday(start_date) if frequency == Frequency.weekly else None
    return day_of_month, day_of_week


def _rule_snapshot(rule: RecurringRule) -> dict:
    return {
        "description": rule.description,
        "amount": str(rule.amount),
        "frequency": Frequency(rule.frequency).value,
        "start_date": rule.start_date.isoformat(),
        "end_date": rule.end_date.isoformat() if rule.end_date else None,
        "is_active": rule.is_active,
    }


def _get_rule(db: Session, ctx: RequestContext, rule_id: int) -> RecurringRule | None:
    return db.scalar(
        select(RecurringRule).where(RecurringRule.id == rule_id, RecurringRule.org_id == ctx.org_id)
    )


def _account_in_org(db: Session, ctx: RequestContext, account_id: int) -> bool:
    found = db.scalar(select(Account.id).where(Account.id == account_id, Account.org_id == ctx.org_id))
    return found is not None


def list_recurring_rules(db: Session, ctx: RequestContext) -> list[RecurringRule]:
    return list(
        db.scalars(
            select(RecurringRule)
            .where(RecurringRule.org_id == ctx.org_id)
            .order_by(RecurringRule.created_at.desc(), RecurringRule.id.desc())
        ).all()
    )


def create_recurring_rule(
    db: Session,
    ctx: RequestContext,
    payload: RecurringRuleCreateRequest,
) -> RecurringRule | OperationError:
    if payload.amount <= 0:
        return invalid("O valor deve ser maior que zero.")
    if payload.end_date is not None and payload.end_date < payload.start_date:
        return invalid("A data final deve ser posterior à data inicial.")
    if not _account_in_org(db, ctx, payload.account_id):
        return not_found("Conta não encontrada.")

    day_of_month, day_of_week = derive_schedule_days(payload.start_date, payload.frequency)
    rule = RecurringRule(
        org_id=ctx.org_id,
        description=payload.description.strip(),
        amount=money(payload.amount),
        account_id=payload.account_id,
        category_id=payload.category_id,
        frequency=payload.frequency,
        start_date=payload.start_date,
        end_date=payload.end_date,
        day_of_month=day_of_month,
        day_of_week=day_of_week,
        is_active=True,
    )
    db.add(rule)
    db.flush()
    log_audit(
        db,
        actor_user_id=ctx.user_id,
        org_id=ctx.org_id,
        action="recurring_rule.create",
        entity_type="recurring_rule",
        entity_id=str(rule.id),
        after_state=_rule_snapshot(rule),
    )
    return rule


def update_recurring_rule(
    db: Session,
    ctx: RequestContext,
    rule_id: int,
    payload: RecurringRuleUpdateRequest,
) -> RecurringRule | OperationError:
    rule = _get_rule(db, ctx, rule_id)
    if rule is None:
        return not_found("Regra recorrente não encontrada.")

    changes = payload.model_dump(exclude_unset=True)
    if "amount" in changes:
        if changes["amount"] is None or changes["amount"] <= 0:
            return invalid("O valor deve ser maior que zero.")
        changes["amount"] = money(changes["amount"])
    if changes.get("account_id") is not None and not _account_in_org(db, ctx, changes["account_id"]):
        return not_found("Conta não encontrada.")

    before_state = _rule_snapshot(rule)
    for key, value in changes.items():
        if value is None and key in _REQUIRED_FIELDS:
            continue
        setattr(rule, key, value)

    # Schedule days are only re-derived when both inputs arrive together.
    if payload.start_date is not None and payload.frequency is not None:
        rule.day_of_month, rule.day_of_week = derive_schedule_days(payload.start_date, payload.frequency)

    db.flush()
    log_audit(
        db,
        actor_user_id=ctx.user_id,
        org_id=ctx.org_id,
        action="recurring_rule.update",
        entity_type="recurring_rule",
        entity_id=str(rule.id),
        before_state=before_state,
        after_state=_rule_snapshot(rule),
    )
    return rule


def toggle_recurring_rule(
    db: Session,
    ctx: RequestContext,
    rule_id: int,
    is_active: bool,
) -> RecurringRule | OperationError:
    rule = _get_rule(db, ctx, rule_id)
    if rule is None:
        return not_found("Regra recorrente não encontrada.")
    rule.is_active = is_active
    db.flush()
    log_audit(
        db,
        actor_user_id=ctx.user_id,
        org_id=ctx.org_id,
        action="recurring_rule.toggle",
        entity_type="recurring_rule",
        entity_id=str(rule.id),
        after_state={"is_active": is_active},
    )
    return rule


def delete_recurring_rule(db: Session, ctx: RequestContext, rule_id: int) -> OperationError | None:
    rule = _get_rule(db, ctx, rule_id)
    if rule is None:
        return not_found("Regra recorrente não encontrada.")
    before_state = _rule_snapshot(rule)
    db.delete(rule)
    db.flush()
    log_audit(
        db,
        actor_user_id=ctx.user_id,
        org_id=ctx.org_id,
        action="recurring_rule.delete",
        entity_type="recurring_rule",
        entity_id=str(rule_id),
        before_state=before_state,
    )
    return None


def last_successful_run_at(db: Session, rule_id: int) -> date | None:
    return db.scalar(
        select(RecurringRun.run_at)
        .where(RecurringRun.rule_id == rule_id, RecurringRun.success.is_(True))
        .order_by(RecurringRun.run_at.desc())
        .limit(1)
    )


def next_due_date(rule: RecurringRule, last_run_at: date | None) -> date:
    if last_run_at is None:
        return rule.start_date
    return add_frequency(last_run_at, rule.frequency)


def is_due(rule: RecurringRule, due: date, today: date) -> bool:
    if due > today:
        return False
    return rule.end_date is None or due <= rule.end_date


def materialize(db: Session, ctx: RequestContext, rule: RecurringRule, due: date) -> RecurringRun:
    transaction = Transaction(
        org_id=ctx.org_id,
        type=TransactionType.expense,
        status=TransactionStatus.pending,
        amount=money(rule.amount),
        account_id=rule.account_id,
        category_id=rule.category_id,
        description=f"{rule.description}{AUTO_SUFFIX}",
        tx_date=due,
        created_by=None,
        meta={"recurring_rule_id": rule.id, "source": RECURRING_SOURCE},
    )
    db.add(transaction)
    db.flush()

    run = RecurringRun(rule_id=rule.id, transaction_id=transaction.id, run_at=due, success=True)
    db.add(run)
    db.flush()
    return run


def advance(db: Session, ctx: RequestContext, rule: RecurringRule) -> RecurringRun | None:
    """One tick for one rule. Returns the logged run, or ``None`` when nothing was due."""
    due = next_due_date(rule, last_successful_run_at(db, rule.id))
    if not is_due(rule, due, ctx.today()):
        return None
    return materialize(db, ctx, rule, due)


def process_recurring_rules(db: Session, ctx: RequestContext) -> dict[str, int]:
    rules = db.scalars(
        select(RecurringRule)
        .where(RecurringRule.org_id == ctx.org_id, RecurringRule.is_active.is_(True))
        .order_by(RecurringRule.id)
    ).all()

    processed = 0
    for rule in rules:
        if advance(db, ctx, rule) is not None:
            processed += 1

    if processed:
        logger.info("Materialized %s recurring transaction(s) for org %s", processed, ctx.org_id)
    return {"processed": processed}
