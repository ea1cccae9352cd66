"""GET /v1/units/{unit_id}/... - outstanding bills and credit history"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from hoa_payments.api.v1.schemas import (
    BillSchema,
    CreditEntrySchema,
    CreditHistoryResponse,
    OutstandingBillsResponse,
)
from hoa_payments.api.dependencies import get_payment_service
from hoa_payments.config import settings
from hoa_payments.services.unified_payment import UnifiedPaymentService

router = APIRouter()


@router.get("/units/{unit_id}/bills", response_model=OutstandingBillsResponse)
def get_outstanding_bills(
    unit_id: str,
    as_of: Optional[date] = None,
    service: UnifiedPaymentService = Depends(get_payment_service),
):
    """
    Bills the unit still owes, in the order a payment would be applied.

    Future water bills are not listed; they are not payable yet.
    """
    as_of = as_of or date.today()
    bills, total = service.outstanding_bills(unit_id, as_of)

    return OutstandingBillsResponse(
        unit_id=unit_id,
        as_of=as_of,
        total_due_cents=total.cents,
        bills=[BillSchema.from_domain(b) for b in bills],
    )


@router.get("/units/{unit_id}/credit", response_model=CreditHistoryResponse)
def get_credit_history(
    unit_id: str,
    limit: int = Query(settings.credit_history_default_limit, ge=1, le=settings.credit_history_max_limit),
    service: UnifiedPaymentService = Depends(get_payment_service),
):
    """Current credit balance and most recent ledger entries"""
    balance, entries = service.credit_history(unit_id, limit)

    return CreditHistoryResponse(
        unit_id=unit_id,
        current_balance_cents=balance.cents,
        history=[CreditEntrySchema.from_domain(e) for e in entries],
    )
