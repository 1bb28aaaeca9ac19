"""Initial schema for Moedinha.

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _enums() -> dict[str, sa.Enum]:
    return {
        "member_role": sa.Enum("admin", "financeiro", "leitura", name="member_role"),
        "transaction_type": sa.Enum("income", "expense", "transfer", name="transaction_type"),
        "transaction_status": sa.Enum(
            "pending", "cleared", "reconciled", "cancelled", name="transaction_status"
        ),
        "distribution_edit_mode": sa.Enum("auto", "manual", name="distribution_edit_mode"),
        "base_income_mode": sa.Enum(
            "current_month", "avg_3m", "avg_6m", "planned_manual", name="base_income_mode"
        ),
        "alert_severity": sa.Enum("info", "warn", "critical", name="alert_severity"),
        "recurring_frequency": sa.Enum("weekly", "monthly", "yearly", name="recurring_frequency"),
        "goal_type": sa.Enum(
            "savings", "emergency_fund", "debt", "reduction", "purchase", "piggy_bank", name="goal_type"
        ),
        "goal_status": sa.Enum("active", "completed", "paused", "cancelled", name="goal_status"),
    }


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    enums = _enums()
    for enum in enums.values():
        enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "orgs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False),
        sa.Column("telegram_config", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_orgs_id", "orgs", ["id"])
    op.create_index("ix_orgs_slug", "orgs", ["slug"], unique=True)

    op.create_table(
        "org_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", enums["member_role"], nullable=False, server_default="admin"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("org_id", "user_id", name="uq_org_members_org_user"),
    )
    op.create_index("ix_org_members_id", "org_members", ["id"])

    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False, server_default="bank"),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="BRL"),
        sa.Column("initial_balance", sa.Numeric(24, 2), nullable=False, server_default="0"),
        sa.Column("liquidity_type", sa.String(length=50), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_credit_card", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("credit_limit", sa.Numeric(24, 2), nullable=True),
        sa.Column("closing_day", sa.Integer(), nullable=True),
        sa.Column("due_day", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_accounts_id", "accounts", ["id"])
    op.create_index("ix_accounts_org_id", "accounts", ["org_id"])

    op.create_table(
        "distributions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("mode", enums["distribution_edit_mode"], nullable=False, server_default="auto"),
        sa.Column(
            "base_income_mode",
            enums["base_income_mode"],
            nullable=False,
            server_default="current_month",
        ),
        sa.Column("planned_income", sa.Numeric(24, 2), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_distributions_id", "distributions", ["id"])
    op.create_index("ix_distributions_org_id", "distributions", ["org_id"])
    op.create_index(
        "uq_distributions_org_default",
        "distributions",
        ["org_id"],
        unique=True,
        postgresql_where=sa.text("is_default"),
    )

    op.create_table(
        "distribution_buckets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "distribution_id",
            sa.Integer(),
            sa.ForeignKey("distributions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("percent_bps", sa.Integer(), nullable=False),
        sa.Column("color", sa.String(length=20), nullable=True),
        sa.Column("icon", sa.String(length=50), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_flexible", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("percent_bps >= 0 AND percent_bps <= 10000", name="ck_distribution_buckets_bps"),
    )
    op.create_index("ix_distribution_buckets_id", "distribution_buckets", ["id"])
    op.create_index("ix_distribution_buckets_distribution_id", "distribution_buckets", ["distribution_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", enums["transaction_type"], nullable=False),
        sa.Column("status", enums["transaction_status"], nullable=False, server_default="cleared"),
        sa.Column("amount", sa.Numeric(24, 2), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="BRL"),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column(
            "bucket_id",
            sa.Integer(),
            sa.ForeignKey("distribution_buckets.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("installment_id", sa.String(length=64), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_transactions_id", "transactions", ["id"])
    op.create_index("ix_transactions_org_id", "transactions", ["org_id"])
    op.create_index("ix_transactions_account_id", "transactions", ["account_id"])
    op.create_index("ix_transactions_date", "transactions", ["date"])

    op.create_table(
        "month_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("month", sa.Date(), nullable=False),
        sa.Column("base_income", sa.Numeric(24, 2), nullable=False, server_default="0"),
        sa.Column("base_income_mode", enums["base_income_mode"], nullable=False),
        sa.Column("bucket_data", sa.JSON(), nullable=False),
        sa.Column("day_ratio", sa.Numeric(12, 6), nullable=True),
        sa.Column("total_spend", sa.Numeric(24, 2), nullable=True),
        sa.Column("total_budget", sa.Numeric(24, 2), nullable=True),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("org_id", "month", name="uq_month_snapshots_org_month"),
    )
    op.create_index("ix_month_snapshots_id", "month_snapshots", ["id"])
    op.create_index("ix_month_snapshots_org_id", "month_snapshots", ["org_id"])

    op.create_table(
        "alert_definitions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("severity", enums["alert_severity"], nullable=False, server_default="info"),
        sa.Column("cooldown_hours", sa.Integer(), nullable=False, server_default="24"),
        sa.Column("hysteresis_pct", sa.Numeric(8, 2), nullable=True),
        sa.Column("message_template", sa.Text(), nullable=False),
        sa.Column("cta_primary", sa.String(length=100), nullable=True),
        sa.Column("cta_secondary", sa.String(length=100), nullable=True),
        sa.Column("channels", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
    )
    op.create_index("ix_alert_definitions_id", "alert_definitions", ["id"])
    op.create_index("ix_alert_definitions_code", "alert_definitions", ["code"], unique=True)

    op.create_table(
        "alerts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("month", sa.Date(), nullable=False),
        sa.Column("alert_code", sa.String(length=50), nullable=False),
        sa.Column("severity", enums["alert_severity"], nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("context_json", sa.JSON(), nullable=False),
        sa.Column("cta_primary", sa.String(length=100), nullable=True),
        sa.Column("cta_secondary", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("snoozed_until", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_alerts_id", "alerts", ["id"])
    op.create_index("ix_alerts_org_id", "alerts", ["org_id"])
    op.create_index("ix_alerts_alert_code", "alerts", ["alert_code"])
    op.create_index("ix_alerts_org_code_month", "alerts", ["org_id", "alert_code", "month"])

    op.create_table(
        "recurring_rules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Numeric(24, 2), nullable=False),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("frequency", enums["recurring_frequency"], nullable=False),
        sa.Column("day_of_month", sa.Integer(), nullable=True),
        sa.Column("day_of_week", sa.Integer(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_recurring_rules_id", "recurring_rules", ["id"])
    op.create_index("ix_recurring_rules_org_id", "recurring_rules", ["org_id"])

    op.create_table(
        "recurring_runs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "rule_id",
            sa.Integer(),
            sa.ForeignKey("recurring_rules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "transaction_id",
            sa.Integer(),
            sa.ForeignKey("transactions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("run_at", sa.Date(), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_recurring_runs_id", "recurring_runs", ["id"])
    op.create_index("ix_recurring_runs_rule_id", "recurring_runs", ["rule_id"])

    op.create_table(
        "goals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", enums["goal_type"], nullable=False),
        sa.Column("status", enums["goal_status"], nullable=False, server_default="active"),
        sa.Column("target_amount", sa.Numeric(24, 2), nullable=True),
        sa.Column("target_date", sa.Date(), nullable=True),
        sa.Column("current_amount", sa.Numeric(24, 2), nullable=False, server_default="0"),
        sa.Column("strategy", sa.String(length=50), nullable=False, server_default="manual"),
        *_timestamps(),
    )
    op.create_index("ix_goals_id", "goals", ["id"])
    op.create_index("ix_goals_org_id", "goals", ["org_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=True),
        sa.Column(
            "actor_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.String(length=100), nullable=False),
        sa.Column("before_state", sa.JSON(), nullable=True),
        sa.Column("after_state", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_id", "audit_logs", ["id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_id", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_goals_org_id", table_name="goals")
    op.drop_index("ix_goals_id", table_name="goals")
    op.drop_table("goals")
    op.drop_index("ix_recurring_runs_rule_id", table_name="recurring_runs")
    op.drop_index("ix_recurring_runs_id", table_name="recurring_runs")
    op.drop_table("recurring_runs")
    op.drop_index("ix_recurring_rules_org_id", table_name="recurring_rules")
    op.drop_index("ix_recurring_rules_id", table_name="recurring_rules")
    op.drop_table("recurring_rules")
    op.drop_index("ix_alerts_org_code_month", table_name="alerts")
    op.drop_index("ix_alerts_alert_code", table_name="alerts")
    op.drop_index("ix_alerts_org_id", table_name="alerts")
    op.drop_index("ix_alerts_id", table_name="alerts")
    op.drop_table("alerts")
    op.drop_index("ix_alert_definitions_code", table_name="alert_definitions")
    op.drop_index("ix_alert_definitions_id", table_name="alert_definitions")
    op.drop_table("alert_definitions")
    op.drop_index("ix_month_snapshots_org_id", table_name="month_snapshots")
    op.drop_index("ix_month_snapshots_id", table_name="month_snapshots")
    op.drop_table("month_snapshots")
    op.drop_index("ix_transactions_date", table_name="transactions")
    op.drop_index("ix_transactions_account_id", table_name="transactions")
    op.drop_index("ix_transactions_org_id", table_name="transactions")
    op.drop_index("ix_transactions_id", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_distribution_buckets_distribution_id", table_name="distribution_buckets")
    op.drop_index("ix_distribution_buckets_id", table_name="distribution_buckets")
    op.drop_table("distribution_buckets")
    op.drop_index("uq_distributions_org_default", table_name="distributions")
    op.drop_index("ix_distributions_org_id", table_name="distributions")
    op.drop_index("ix_distributions_id", table_name="distributions")
    op.drop_table("distributions")
    op.drop_index("ix_accounts_org_id", table_name="accounts")
    op.drop_index("ix_accounts_id", table_name="accounts")
    op.drop_table("accounts")
    op.drop_index("ix_org_members_id", table_name="org_members")
    op.drop_table("org_members")
    op.drop_index("ix_orgs_slug", table_name="orgs")
    op.drop_index("ix_orgs_id", table_name="orgs")
    op.drop_table("orgs")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")

    for enum in reversed(list(_enums().values())):
        enum.drop(op.get_bind(), checkfirst=True)
