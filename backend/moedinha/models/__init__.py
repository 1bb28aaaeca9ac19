from moedinha.models.account import Account
from moedinha.models.alert import Alert, AlertDefinition
from moedinha.models.audit import AuditLog
from moedinha.models.distribution import Distribution, DistributionBucket
from moedinha.models.enums import (
    AlertSeverity,
    BaseIncomeMode,
    DistributionEditMode,
    Frequency,
    GoalStatus,
    GoalType,
    MemberRole,
    TransactionStatus,
    TransactionType,
)
from moedinha.models.goal import Goal
from moedinha.models.org import Org, OrgMember
from moedinha.models.recurring import RecurringRule, RecurringRun
from moedinha.models.snapshot import MonthSnapshot
from moedinha.models.transaction import Transaction
from moedinha.models.user import User

__all__ = [
    "Account",
    "Alert",
    "AlertDefinition",
    "AuditLog",
    "Distribution",
    "DistributionBucket",
    "AlertSeverity",
    "BaseIncomeMode",
    "DistributionEditMode",
    "Frequency",
    "GoalStatus",
    "GoalType",
    "MemberRole",
    "TransactionStatus",
    "TransactionType",
    "Goal",
    "Org",
    "OrgMember",
    "RecurringRule",
    "RecurringRun",
    "MonthSnapshot",
    "Transaction",
    "User",
]
