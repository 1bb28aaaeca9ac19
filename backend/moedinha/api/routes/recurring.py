from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from moedinha.api.deps import get_db, get_request_context, raise_for_error
from moedinha.core.context import RequestContext
from moedinha.core.security import WRITE_ROLES, require_roles
from moedinha.schemas.common import MessageResponse
from moedinha.schemas.recurring import (
    ProcessRecurringResponse,
    RecurringRuleCreateRequest,
    RecurringRuleOut,
    RecurringRuleToggleRequest,
    RecurringRuleUpdateRequest,
)
from moedinha.services.recurring import (
    create_recurring_rule,
    delete_recurring_rule,
    list_recurring_rules,
    process_recurring_rules,
    toggle_recurring_rule,
    update_recurring_rule,
)


router = APIRouter(prefix="/recurring-rules", tags=["recurring"])


@router.get("", response_model=list[RecurringRuleOut])
def get_rules(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return list_recurring_rules(db, ctx)


@router.post("", response_model=RecurringRuleOut, status_code=status.HTTP_201_CREATED)
def post_rule(
    payload: RecurringRuleCreateRequest,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    require_roles(db, ctx, WRITE_ROLES)
    rule = raise_for_error(create_recurring_rule(db, ctx, payload))
    db.commit()
    db.refresh(rule)
    return rule


@router.patch("/{rule_id}", response_model=RecurringRuleOut)
def patch_rule(
    rule_id: int,
    payload: RecurringRuleUpdateRequest,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    require_roles(db, ctx, WRITE_ROLES)
    rule = raise_for_error(update_recurring_rule(db, ctx, rule_id, payload))
    db.commit()
    db.refresh(rule)
    return rule


@router.post("/{rule_id}/toggle", response_model=RecurringRuleOut)
def post_toggle(
    rule_id: int,
    payload: RecurringRuleToggleRequest,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    require_roles(db, ctx, WRITE_ROLES)
    rule = raise_for_error(toggle_recurring_rule(db, ctx, rule_id, payload.is_active))
    db.commit()
    db.refresh(rule)
    return rule


@router.delete("/{rule_id}", response_model=MessageResponse)
def remove_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    require_roles(db, ctx, WRITE_ROLES)
    raise_for_error(delete_recurring_rule(db, ctx, rule_id))
    db.commit()
    return MessageResponse(message="Regra removida.")


@router.post("/process", response_model=ProcessRecurringResponse)
def post_process(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    require_roles(db, ctx, WRITE_ROLES)
    result = process_recurring_rules(db, ctx)
    db.commit()
    return ProcessRecurringResponse(**result)
