"""Alert evaluation over freshly computed monthly metrics.

Every known alert code maps to one rule variant:

* ``BucketRule``: checked against buckets in distribution sort order; the first
  matching bucket that is not held back by hysteresis gets the alert, and the rule
  stops there (one alert per rule per run).
* ``OrgRule``: checked once against org-wide aggregates.
* ``UnsupportedRule``: defined so the code is recognised, but never fires.

A rule is skipped while its last alert for the month is inside the definition's
cooldown window, and suppressed when the triggering ``spend_pct`` moved less than
the definition's hysteresis since that last alert.

Thresholds compare the unrounded figures carried on ``BucketMetrics.exact``;
the quantized ones are what gets stored and rendered.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
import re
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from moedinha.core.config import get_settings
from moedinha.core.context import RequestContext
from moedinha.models.alert import Alert, AlertDefinition
from moedinha.services.errors import OperationError, not_found
from moedinha.services.metrics import BucketMetrics, ExactFigures, MonthlyMetrics
from moedinha.utils.dates import ensure_aware, month_start
from moedinha.utils.decimal_math import as_json_number, pct


@dataclass(frozen=True)
class AlertInputs:
    metrics: MonthlyMetrics
    pending_count: int
    pending_pct: Decimal


@dataclass(frozen=True)
class BucketRule:
    code: str
    fires: Callable[[BucketMetrics], bool]


@dataclass(frozen=True)
class OrgRule:
    code: str
    fires: Callable[[AlertInputs, dict[str, Any]], bool]


@dataclass(frozen=True)
class UnsupportedRule:
    code: str
    reason: str


AlertRule = BucketRule | OrgRule | UnsupportedRule


def _figures(bucket: BucketMetrics) -> ExactFigures:
    if bucket.exact is not None:
        return bucket.exact
    return ExactFigures(
        budget=bucket.budget,
        spend_pct=bucket.spend_pct,
        pace_ideal=bucket.pace_ideal,
        projection=bucket.projection,
    )


def spend_pct(bucket: BucketMetrics) -> Decimal:
    return _figures(bucket).spend_pct


def pace_overrun(bucket: BucketMetrics) -> Decimal:
    pace_ideal = _figures(bucket).pace_ideal
    if pace_ideal <= 0:
        return Decimal(0)
    return (bucket.spend - pace_ideal) / pace_ideal


def projection_pct(bucket: BucketMetrics) -> Decimal:
    figures = _figures(bucket)
    if figures.budget <= 0:
        return Decimal(0)
    return figures.projection / figures.budget * 100


def _concentration(inputs: AlertInputs, context: dict[str, Any]) -> bool:
    total = inputs.metrics.total_spend or Decimal(1)
    top = max((row.spend for row in inputs.metrics.bucket_data), default=Decimal(0))
    share = max(top, Decimal(0)) / total * 100
    context["share_pct"] = as_json_number(pct(share))
    return share > 60


RULES: dict[str, AlertRule] = {
    rule.code: rule
    for rule in (
        BucketRule("bucket_70", lambda b: spend_pct(b) >= 70),
        BucketRule("bucket_90", lambda b: spend_pct(b) >= 90),
        BucketRule("bucket_over", lambda b: spend_pct(b) >= 100),
        BucketRule("pace_15", lambda b: pace_overrun(b) >= Decimal("0.15")),
        BucketRule("pace_30", lambda b: pace_overrun(b) >= Decimal("0.30")),
        BucketRule("projection", lambda b: projection_pct(b) >= 90),
        OrgRule("concentration_bucket", _concentration),
        # Needs a transaction-level ranking of the top five expenses; not built yet.
        UnsupportedRule("concentration_top5", "requires per-transaction ranking"),
        OrgRule("pending_pct", lambda inputs, _ctx: inputs.pending_pct > 10),
        OrgRule("pending_count", lambda inputs, _ctx: inputs.pending_count >= 20),
    )
}

KNOWN_CODES = list(RULES)

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Decimal, float)):
        text = format(Decimal(str(value)).normalize(), "f")
        return text
    return str(value)


def render_message(template: str, context: dict[str, Any]) -> str:
    """Replace ``{key}`` tokens with context values; unknown or empty keys become ''."""
    return _PLACEHOLDER.sub(lambda match: _stringify(context.get(match.group(1))), template)


def _base_context(inputs: AlertInputs) -> dict[str, Any]:
    return {
        "bucket": "",
        "projection_pct": 0,
        "pace_ratio": 0,
        "pending_count": inputs.pending_count,
        "pending_pct": as_json_number(inputs.pending_pct),
        "total_spend": as_json_number(inputs.metrics.total_spend),
    }


def _bucket_context(inputs: AlertInputs, bucket: BucketMetrics, bucket_name: str) -> dict[str, Any]:
    context = _base_context(inputs)
    context.update(
        {
            "bucket": bucket_name,
            "spend_pct": as_json_number(bucket.spend_pct),
            "projection_pct": as_json_number(pct(projection_pct(bucket))),
            "pace_ratio": as_json_number(pct(pace_overrun(bucket))),
        }
    )
    return context


def get_last_alert(db: Session, org_id: int, code: str, month: date) -> Alert | None:
    return db.scalar(
        select(Alert)
        .where(Alert.org_id == org_id, Alert.alert_code == code, Alert.month == month)
        .order_by(Alert.created_at.desc(), Alert.id.desc())
        .limit(1)
    )


def in_cooldown(last_alert: Alert | None, cooldown_hours: int, ctx: RequestContext) -> bool:
    if last_alert is None:
        return False
    now = ctx.now()
    created_at = ensure_aware(last_alert.created_at, now)
    return created_at > now - timedelta(hours=cooldown_hours)


def suppressed_by_hysteresis(
    last_alert: Alert | None,
    definition: AlertDefinition,
    context: dict[str, Any],
) -> bool:
    if last_alert is None or not last_alert.context_json:
        return False
    last_pct = last_alert.context_json.get("spend_pct")
    current_pct = context.get("spend_pct")
    if last_pct is None or current_pct is None:
        return False
    threshold = (
        Decimal(str(definition.hysteresis_pct))
        if definition.hysteresis_pct is not None
        else Decimal(str(get_settings().default_hysteresis_pct))
    )
    return abs(Decimal(str(current_pct)) - Decimal(str(last_pct))) < threshold


def _candidate_contexts(
    rule: AlertRule,
    inputs: AlertInputs,
    bucket_names: dict[int, str],
) -> Iterator[dict[str, Any]]:
    """Contexts the rule fires for; bucket rules yield one per matching bucket in sort order."""
    if isinstance(rule, UnsupportedRule):
        return
    if isinstance(rule, OrgRule):
        context = _base_context(inputs)
        if rule.fires(inputs, context):
            yield context
        return
    for bucket in inputs.metrics.bucket_data:
        if rule.fires(bucket):
            name = bucket_names.get(bucket.bucket_id, str(bucket.bucket_id))
            yield _bucket_context(inputs, bucket, name)


def generate_alerts(
    db: Session,
    ctx: RequestContext,
    month: date,
    metrics: MonthlyMetrics,
    bucket_names: dict[int, str],
    *,
    pending_count: int = 0,
    pending_pct: Decimal | float = 0,
) -> int:
    """Evaluate every known alert definition for the month and insert the ones that fire.

    Returns the number of alerts inserted.
    """
    month = month_start(month)
    definitions = list(
        db.scalars(
            select(AlertDefinition)
            .where(AlertDefinition.code.in_(KNOWN_CODES))
            .order_by(AlertDefinition.id)
        ).all()
    )
    inputs = AlertInputs(
        metrics=metrics,
        pending_count=pending_count,
        pending_pct=pct(pending_pct),
    )

    emitted = 0
    for definition in definitions:
        rule = RULES[definition.code]
        last_alert = get_last_alert(db, ctx.org_id, definition.code, month)
        if in_cooldown(last_alert, definition.cooldown_hours, ctx):
            continue

        context = next(
            (
                candidate
                for candidate in _candidate_contexts(rule, inputs, bucket_names)
                if not suppressed_by_hysteresis(last_alert, definition, candidate)
            ),
            None,
        )
        if context is None:
            continue

        db.add(
            Alert(
                org_id=ctx.org_id,
                user_id=ctx.user_id,
                month=month,
                alert_code=definition.code,
                severity=definition.severity,
                message=render_message(definition.message_template, context),
                context_json=context,
                cta_primary=definition.cta_primary,
                cta_secondary=definition.cta_secondary,
                created_at=ctx.now(),
            )
        )
        emitted += 1

    db.flush()
    return emitted


def list_alerts(db: Session, ctx: RequestContext, month: date | None = None) -> list[Alert]:
    query = select(Alert).where(Alert.org_id == ctx.org_id)
    if month is not None:
        query = query.where(Alert.month == month_start(month))
    return list(db.scalars(query.order_by(Alert.created_at.desc(), Alert.id.desc())).all())


def acknowledge_alert(db: Session, ctx: RequestContext, alert_id: int) -> Alert | OperationError:
    alert = db.scalar(select(Alert).where(Alert.id == alert_id, Alert.org_id == ctx.org_id))
    if alert is None:
        return not_found("Alerta não encontrado.")
    if alert.acknowledged_at is None:
        alert.acknowledged_at = ctx.now()
        db.flush()
    return alert
