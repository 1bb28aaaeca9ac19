from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from moedinha.api.deps import get_current_user, get_db, raise_for_error
from moedinha.models.user import User
from moedinha.schemas.orgs import OrgCreateRequest, OrgCreateResponse
from moedinha.services.orgs import create_organization


router = APIRouter(prefix="/orgs", tags=["orgs"])


@router.post("", response_model=OrgCreateResponse, status_code=status.HTTP_201_CREATED)
def post_org(
    payload: OrgCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    created = raise_for_error(
        create_organization(db, user_id=current_user.id, name=payload.name, slug=payload.slug)
    )
    db.commit()
    return OrgCreateResponse(org_id=created.org_id, slug=created.slug)
