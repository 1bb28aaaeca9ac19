from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from moedinha.models.alert import AlertDefinition
from moedinha.models.enums import AlertSeverity


ALERT_DEFINITIONS = [
    {
        "code": "bucket_70",
        "name": "Bucket em 70%",
        "severity": AlertSeverity.info,
        "message_template": "Você já usou {spend_pct}% do bucket {bucket} este mês.",
        "cta_primary": "Ver lançamentos",
    },
    {
        "code": "bucket_90",
        "name": "Bucket em 90%",
        "severity": AlertSeverity.warn,
        "message_template": "Atenção: {bucket} chegou a {spend_pct}% do orçamento.",
        "cta_primary": "Ajustar distribuição",
        "cta_secondary": "Ver lançamentos",
    },
    {
        "code": "bucket_over",
        "name": "Bucket estourado",
        "severity": AlertSeverity.critical,
        "message_template": "O bucket {bucket} passou do orçamento ({spend_pct}%).",
        "cta_primary": "Ajustar distribuição",
    },
    {
        "code": "pace_15",
        "name": "Ritmo 15% acima",
        "severity": AlertSeverity.info,
        "message_template": "{bucket} está gastando acima do ritmo ideal do mês.",
    },
    {
        "code": "pace_30",
        "name": "Ritmo 30% acima",
        "severity": AlertSeverity.warn,
        "message_template": "{bucket} está bem acima do ritmo ideal do mês.",
        "cta_primary": "Ver lançamentos",
    },
    {
        "code": "projection",
        "name": "Projeção perto do limite",
        "severity": AlertSeverity.warn,
        "message_template": "No ritmo atual, {bucket} deve fechar o mês em {projection_pct}% do orçamento.",
    },
    {
        "code": "concentration_bucket",
        "name": "Gasto concentrado",
        "severity": AlertSeverity.info,
        "message_template": "Um único bucket concentra {share_pct}% dos gastos do mês.",
    },
    {
        "code": "concentration_top5",
        "name": "Top 5 despesas concentradas",
        "severity": AlertSeverity.info,
        "message_template": "Suas cinco maiores despesas concentram boa parte do mês.",
    },
    {
        "code": "pending_pct",
        "name": "Gastos sem bucket",
        "severity": AlertSeverity.warn,
        "message_template": "{pending_pct}% dos gastos do mês ainda estão sem bucket.",
        "cta_primary": "Classificar lançamentos",
    },
    {
        "code": "pending_count",
        "name": "Muitos lançamentos sem bucket",
        "severity": AlertSeverity.info,
        "message_template": "Há {pending_count} lançamentos sem bucket neste mês.",
        "cta_primary": "Classificar lançamentos",
    },
]


def seed_alert_definitions(db: Session) -> int:
    """Insert missing alert definitions; existing codes are left as they are."""
    existing = set(db.scalars(select(AlertDefinition.code)).all())
    created = 0
    for values in ALERT_DEFINITIONS:
        if values["code"] in existing:
            continue
        db.add(AlertDefinition(cooldown_hours=24, channels=["in_app"], **values))
        created += 1
    db.flush()
    return created
