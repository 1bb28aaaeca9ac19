from __future__ import annotations

from sqlalchemy.orm import Session

from moedinha.models.audit import AuditLog


def log_audit(
    db: Session,
    *,
    actor_user_id: int | None,
    org_id: int | None,
    action: str,
    entity_type: str,
    entity_id: str,
    before_state: dict | None = None,
    after_state: dict | None = None,
) -> AuditLog:
    log = AuditLog(
        org_id=org_id,
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        before_state=before_state,
        after_state=after_state,
    )
    db.add(log)
    return log
