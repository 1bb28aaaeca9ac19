from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from moedinha.api.deps import get_db, get_request_context, raise_for_error
from moedinha.core.context import RequestContext
from moedinha.schemas.invoices import (
    InvoiceAccountOut,
    InvoiceMonthOut,
    InvoiceOut,
    InvoicePeriodOut,
    InvoiceTransactionOut,
)
from moedinha.services.invoices import get_available_invoices, get_invoice_data


router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.get("/{account_id}", response_model=InvoiceOut)
def get_invoice(
    account_id: int,
    year: int | None = Query(default=None),
    month: int | None = Query(default=None, ge=1, le=12),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    data = raise_for_error(get_invoice_data(db, ctx, account_id, year, month))
    return InvoiceOut(
        account=InvoiceAccountOut.model_validate(data.account),
        period=InvoicePeriodOut.model_validate(data.period),
        total=data.total,
        status=data.status.value,
        transactions=[InvoiceTransactionOut.model_validate(tx) for tx in data.transactions],
    )


@router.get("/{account_id}/available", response_model=list[InvoiceMonthOut])
def list_invoice_months(
    account_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    months = raise_for_error(get_available_invoices(db, ctx, account_id))
    return [InvoiceMonthOut.model_validate(item) for item in months]
