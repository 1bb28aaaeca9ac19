from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
import logging

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from moedinha.core.config import get_settings
from moedinha.core.context import Clock, system_clock
from moedinha.models.enums import TransactionStatus, TransactionType
from moedinha.models.org import Org
from moedinha.models.transaction import Transaction
from moedinha.utils.dates import PT_BR_MONTHS
from moedinha.utils.decimal_math import money


logger = logging.getLogger(__name__)


@dataclass
class DigestSummary:
    processed: int = 0
    details: list[dict] = field(default_factory=list)


def format_brl(value: Decimal | int | float) -> str:
    amount = money(value)
    sign = "-" if amount < 0 else ""
    grouped = f"{abs(amount):,.2f}"
    # 1,234.56 -> 1.234,56
    grouped = grouped.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {grouped}"


def send_telegram_message(chat_id: str, text: str, client: httpx.Client | None = None) -> bool:
    """Post ``text`` to a chat through the bot API. False when disabled or on failure."""
    settings = get_settings()
    token = settings.telegram_bot_token.strip()
    if not token:
        return False

    url = f"{settings.telegram_base_url.rstrip('/')}/bot{token}/sendMessage"
    payload = {"chat_id": chat_id, "text": text, "parse_mode": "Markdown"}
    try:
        if client is None:
            with httpx.Client(timeout=15.0) as owned:
                response = owned.post(url, json=payload)
        else:
            response = client.post(url, json=payload)
        response.raise_for_status()
    except httpx.HTTPError:
        logger.exception("Telegram delivery failed for chat %s", chat_id)
        return False
    return True


def _pending_bills(db: Session, org_id: int, start: date, end: date) -> list[Transaction]:
    return list(
        db.scalars(
            select(Transaction)
            .where(
                Transaction.org_id == org_id,
                Transaction.type == TransactionType.expense,
                Transaction.status == TransactionStatus.pending,
                Transaction.deleted_at.is_(None),
                Transaction.tx_date >= start,
                Transaction.tx_date <= end,
            )
            .order_by(Transaction.tx_date, Transaction.id)
        ).all()
    )


def _bill_line(bill: Transaction) -> str:
    return f"• {bill.description or 'Despesa'}: {format_brl(bill.amount)}"


def build_daily_digest(db: Session, org: Org, today: date) -> str | None:
    config = org.telegram_config or {}
    preferences = config.get("preferences") or {}
    lines: list[str] = []

    if preferences.get("daily_summary"):
        lines.append(f"📊 *Resumo Diário - {org.name}*")
        lines.append(f"🗓 {today.day:02d} de {PT_BR_MONTHS[today.month - 1]}")

    if preferences.get("bill_reminder"):
        tomorrow = today + timedelta(days=1)
        bills = _pending_bills(db, org.id, today, tomorrow)
        due_today = [bill for bill in bills if bill.tx_date == today]
        due_tomorrow = [bill for bill in bills if bill.tx_date == tomorrow]
        if due_today:
            lines.append("\n⚠️ *Vencendo Hoje:*")
            lines.extend(_bill_line(bill) for bill in due_today)
        if due_tomorrow:
            lines.append("\n🕒 *Vencendo Amanhã:*")
            lines.extend(_bill_line(bill) for bill in due_tomorrow)

    return "\n".join(lines) if lines else None


def send_daily_digests(
    db: Session,
    clock: Clock = system_clock,
    client: httpx.Client | None = None,
) -> DigestSummary:
    today = clock().date()
    summary = DigestSummary()
    orgs = db.scalars(select(Org).order_by(Org.id)).all()

    for org in orgs:
        config = org.telegram_config or {}
        if not config.get("is_active") or not config.get("chat_id"):
            continue
        message = build_daily_digest(db, org, today)
        if message is None:
            continue
        sent = send_telegram_message(str(config["chat_id"]), message, client=client)
        summary.details.append({"org": org.name, "sent": sent})

    summary.processed = len(summary.details)
    return summary
