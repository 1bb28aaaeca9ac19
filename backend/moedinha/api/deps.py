from collections.abc import Generator
from typing import TypeVar

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from moedinha.core.context import RequestContext
from moedinha.db.session import SessionLocal
from moedinha.models.user import User
from moedinha.services.errors import (
    NO_ORGANIZATION,
    NOT_AUTHORIZED,
    NOT_FOUND,
    STORE,
    VALIDATION,
    OperationError,
)
from moedinha.services.orgs import get_active_org_id


T = TypeVar("T")

_ERROR_STATUS = {
    NOT_AUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    NOT_FOUND: status.HTTP_404_NOT_FOUND,
    NO_ORGANIZATION: status.HTTP_404_NOT_FOUND,
    VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    STORE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    db: Session = Depends(get_db),
    x_user_id: int | None = Header(default=None),
) -> User:
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
        )
    user = db.get(User, x_user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user.",
        )
    return user


def get_request_context(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> RequestContext:
    org_id = get_active_org_id(db, current_user.id)
    if org_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organização não encontrada.",
        )
    return RequestContext(user_id=current_user.id, org_id=org_id)


def raise_for_error(result: T | OperationError) -> T:
    if isinstance(result, OperationError):
        raise HTTPException(
            status_code=_ERROR_STATUS.get(result.code, status.HTTP_400_BAD_REQUEST),
            detail=result.message,
        )
    return result
