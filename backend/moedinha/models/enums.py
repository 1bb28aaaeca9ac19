import enum


class MemberRole(str, enum.Enum):
    admin = "admin"
    financeiro = "financeiro"
    leitura = "leitura"


class TransactionType(str, enum.Enum):
    income = "income"
    expense = "expense"
    transfer = "transfer"


class TransactionStatus(str, enum.Enum):
    pending = "pending"
    cleared = "cleared"
    reconciled = "reconciled"
    cancelled = "cancelled"


class DistributionEditMode(str, enum.Enum):
    auto = "auto"
    manual = "manual"


class BaseIncomeMode(str, enum.Enum):
    current_month = "current_month"
    avg_3m = "avg_3m"
    avg_6m = "avg_6m"
    planned_manual = "planned_manual"


class AlertSeverity(str, enum.Enum):
    info = "info"
    warn = "warn"
    critical = "critical"


class Frequency(str, enum.Enum):
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class GoalType(str, enum.Enum):
    savings = "savings"
    emergency_fund = "emergency_fund"
    debt = "debt"
    reduction = "reduction"
    purchase = "purchase"
    piggy_bank = "piggy_bank"


class GoalStatus(str, enum.Enum):
    active = "active"
    completed = "completed"
    paused = "paused"
    cancelled = "cancelled"
