from collections.abc import Iterable
import hmac

from fastapi import Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from moedinha.core.config import get_settings
from moedinha.core.context import RequestContext
from moedinha.models.enums import MemberRole
from moedinha.models.org import OrgMember


WRITE_ROLES = (MemberRole.admin, MemberRole.financeiro)


def require_roles(db: Session, ctx: RequestContext, allowed_roles: Iterable[MemberRole]) -> None:
    allowed = {MemberRole(role).value for role in allowed_roles}
    role = db.scalar(
        select(OrgMember.role).where(
            OrgMember.org_id == ctx.org_id,
            OrgMember.user_id == ctx.user_id,
        )
    )
    if role is not None and MemberRole(role) == MemberRole.admin:
        return
    if role is not None and MemberRole(role).value in allowed:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Insufficient role privileges.",
    )


def require_cron_secret(authorization: str | None = Header(default=None)) -> None:
    """Bearer check for scheduler-triggered routes; an empty secret disables it."""
    secret = get_settings().cron_secret
    if not secret:
        return
    expected = f"Bearer {secret}"
    if authorization is None or not hmac.compare_digest(authorization, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
