from __future__ import annotations

from dataclasses import dataclass
import logging
import re
import time
import unicodedata

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from moedinha.models.account import Account
from moedinha.models.enums import MemberRole
from moedinha.models.org import Org, OrgMember
from moedinha.services.audit import log_audit
from moedinha.services.errors import NOT_AUTHORIZED, STORE, OperationError, invalid


logger = logging.getLogger(__name__)

DEFAULT_ACCOUNT_NAME = "Conta Principal"

# SQLSTATEs surfaced by the store with a friendlier cause.
_KNOWN_DB_ERRORS = {
    "42501": "Permissao negada no banco. Aplique as politicas de acesso da organizacao.",
    "42883": "Funcao de seguranca ausente no banco. Rode as migrations atualizadas.",
    "42P01": "Tabela ausente no banco. Rode as migrations iniciais.",
}


@dataclass(frozen=True)
class CreatedOrg:
    org_id: int
    slug: str


def get_active_org_id(db: Session, user_id: int) -> int | None:
    # First membership row wins; there is no role-based priority between orgs.
    return db.scalar(
        select(OrgMember.org_id)
        .where(OrgMember.user_id == user_id)
        .order_by(OrgMember.id)
        .limit(1)
    )


def to_slug(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = stripped.lower().strip()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    return re.sub(r"-+", "-", slug)


def _base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while number:
        number, rem = divmod(number, 36)
        out = digits[rem] + out
    return out or "0"


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def describe_db_error(exc: DBAPIError) -> str:
    code = _sqlstate(exc)
    if code in _KNOWN_DB_ERRORS:
        return _KNOWN_DB_ERRORS[code]
    message = str(exc.orig) if exc.orig is not None else ""
    return message.strip() or "Erro ao criar organizacao"


def create_organization(
    db: Session,
    *,
    user_id: int | None,
    name: str,
    slug: str | None = None,
) -> CreatedOrg | OperationError:
    if user_id is None:
        return OperationError(code=NOT_AUTHORIZED, message="Nao autorizado")

    clean_name = name.strip()
    if not clean_name:
        return invalid("Informe um nome para a organizacao.")
    normalized_slug = to_slug(slug or clean_name) or f"org-{_base36(int(time.time() * 1000))}"

    try:
        org = Org(name=clean_name, slug=normalized_slug)
        db.add(org)
        db.flush()
        db.add(OrgMember(org_id=org.id, user_id=user_id, role=MemberRole.admin))
        db.add(
            Account(
                org_id=org.id,
                name=DEFAULT_ACCOUNT_NAME,
                type="bank",
                currency="BRL",
                initial_balance=0,
            )
        )
        log_audit(
            db,
            actor_user_id=user_id,
            org_id=org.id,
            action="org.create",
            entity_type="org",
            entity_id=str(org.id),
            after_state={"name": clean_name, "slug": normalized_slug},
        )
        db.flush()
    except DBAPIError as exc:
        db.rollback()
        logger.warning("Organization creation failed for user %s: %s", user_id, exc.orig)
        if _sqlstate(exc) == "23505":
            return OperationError(code=STORE, message="Slug ja existe. Tente um nome diferente para a URL.")
        return OperationError(code=STORE, message=describe_db_error(exc))

    return CreatedOrg(org_id=org.id, slug=normalized_slug)
