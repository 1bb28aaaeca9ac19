from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from moedinha.core.context import RequestContext
from moedinha.models.account import Account
from moedinha.models.enums import GoalStatus, GoalType
from moedinha.models.goal import Goal
from moedinha.services.audit import log_audit
from moedinha.services.errors import OperationError, invalid
from moedinha.utils.decimal_math import money, pct


logger = logging.getLogger(__name__)

DEFAULT_EMERGENCY_GOAL_NAME = "Reserva de Emergencia"
RESERVE_ACCOUNT_TYPES = ("savings", "investment")
DEFAULT_LIQUIDITY = "immediate"
# The target is read as roughly six months of expenses.
TARGET_MONTHS = 6


@dataclass(frozen=True)
class ReserveMetrics:
    total_accumulated: Decimal
    target_amount: Decimal
    progress_percentage: Decimal
    months_covered: Decimal
    liquidity_breakdown: dict[str, Decimal] = field(default_factory=dict)
    accounts: list[Account] = field(default_factory=list)
    goal_id: int | None = None


def _emergency_goals(db: Session, org_id: int) -> list[Goal]:
    return list(
        db.scalars(
            select(Goal)
            .where(
                Goal.org_id == org_id,
                Goal.type == GoalType.emergency_fund,
                Goal.status != GoalStatus.cancelled,
            )
            .order_by(Goal.updated_at.desc(), Goal.created_at.desc(), Goal.id.desc())
        ).all()
    )


def current_emergency_goal(db: Session, org_id: int) -> Goal | None:
    goals = _emergency_goals(db, org_id)
    if len(goals) > 1:
        logger.warning(
            "Found %s emergency goals for org %s; using the most recent one.",
            len(goals),
            org_id,
        )
    return goals[0] if goals else None


def get_emergency_metrics(db: Session, ctx: RequestContext) -> ReserveMetrics:
    goal = current_emergency_goal(db, ctx.org_id)
    accounts = list(
        db.scalars(
            select(Account)
            .where(
                Account.org_id == ctx.org_id,
                Account.type.in_(RESERVE_ACCOUNT_TYPES),
                Account.is_active.is_(True),
            )
            .order_by(Account.id)
        ).all()
    )

    # Initial balances only; transaction history is not folded in.
    total = money(sum((money(account.initial_balance or 0) for account in accounts), money(0)))
    target = money(goal.target_amount) if goal is not None and goal.target_amount is not None else money(0)

    progress = pct(total / target * 100) if target > 0 else pct(0)
    monthly_expense = target / TARGET_MONTHS
    months_covered = pct(total / monthly_expense) if monthly_expense > 0 else pct(0)

    breakdown: dict[str, Decimal] = defaultdict(lambda: money(0))
    for account in accounts:
        key = account.liquidity_type or DEFAULT_LIQUIDITY
        breakdown[key] = money(breakdown[key] + money(account.initial_balance or 0))

    return ReserveMetrics(
        total_accumulated=total,
        target_amount=target,
        progress_percentage=progress,
        months_covered=months_covered,
        liquidity_breakdown=dict(breakdown),
        accounts=accounts,
        goal_id=goal.id if goal is not None else None,
    )


def update_emergency_goal_target(
    db: Session,
    ctx: RequestContext,
    target_amount: Decimal,
    goal_id: int | None = None,
) -> Goal | OperationError:
    """Set the reserve target, creating the goal if needed.

    Whichever goal gets written becomes the only active emergency-fund goal of
    the org; any other active one is cancelled in the same flush.
    """
    if target_amount is None or Decimal(str(target_amount)) <= 0:
        return invalid("A meta deve ser maior que zero.")
    target = money(target_amount)
    now = ctx.now()

    goal = None
    if goal_id is not None:
        goal = db.scalar(
            select(Goal).where(
                Goal.id == goal_id,
                Goal.org_id == ctx.org_id,
                Goal.type == GoalType.emergency_fund,
            )
        )
    if goal is None:
        goal = current_emergency_goal(db, ctx.org_id)

    before_state = None
    if goal is None:
        goal = Goal(
            org_id=ctx.org_id,
            name=DEFAULT_EMERGENCY_GOAL_NAME,
            type=GoalType.emergency_fund,
            status=GoalStatus.active,
            target_amount=target,
            current_amount=money(0),
            strategy="manual",
            created_at=now,
            updated_at=now,
        )
        db.add(goal)
    else:
        before_state = {"target_amount": str(goal.target_amount) if goal.target_amount is not None else None}
        goal.target_amount = target
        goal.status = GoalStatus.active
        goal.updated_at = now
    db.flush()

    duplicates = db.scalars(
        select(Goal).where(
            Goal.org_id == ctx.org_id,
            Goal.type == GoalType.emergency_fund,
            Goal.status == GoalStatus.active,
            Goal.id != goal.id,
        )
    ).all()
    for duplicate in duplicates:
        duplicate.status = GoalStatus.cancelled
        duplicate.updated_at = now
    if duplicates:
        logger.info(
            "Cancelled %s duplicate emergency goal(s) for org %s",
            len(duplicates),
            ctx.org_id,
        )

    db.flush()
    log_audit(
        db,
        actor_user_id=ctx.user_id,
        org_id=ctx.org_id,
        action="goal.emergency_target",
        entity_type="goal",
        entity_id=str(goal.id),
        before_state=before_state,
        after_state={"target_amount": str(target)},
    )
    return goal
