from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from moedinha.api.deps import get_db, get_request_context, raise_for_error
from moedinha.core.context import RequestContext
from moedinha.schemas.calendar import CalendarDayOut, CalendarMonthResponse
from moedinha.services.calendar import get_month_financial_events


router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.get("/{year}/{month}", response_model=CalendarMonthResponse)
def get_calendar_month(
    year: int,
    month: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    days = raise_for_error(get_month_financial_events(db, ctx, year, month))
    return CalendarMonthResponse(
        year=year,
        month=month,
        days=[CalendarDayOut.model_validate(day) for day in days],
    )
