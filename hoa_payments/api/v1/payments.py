"""POST /v1/payments/unified/{preview,record} - unified payment endpoints"""

import time
import uuid
import logging
from fastapi import APIRouter, Depends, HTTPException, BackgroundTasks, Request

from hoa_payments.api.v1.schemas import (
    AllocationPlanSchema,
    CreditStateSchema,
    PreviewRequest,
    RecordRequest,
    RecordResponse,
    TransactionSchema,
)
from hoa_payments.api.dependencies import get_accounting_client, get_caller_id, get_payment_service, get_request_id
from hoa_payments.domain.exceptions import (
    DuplicateSubmissionError,
    InsufficientCreditError,
    PersistenceError,
    StaleAllocationError,
    ValidationError,
)
from hoa_payments.domain.money import Money
from hoa_payments.infrastructure.clients.accounting import AccountingClient, build_payment_event
from hoa_payments.infrastructure.database.repositories import TransactionRepository, transaction_to_domain
from hoa_payments.infrastructure.observability.logging import log_payment_recorded
from hoa_payments.infrastructure.observability.metrics import (
    preview_counter,
    record_latency_histogram,
    record_payment,
    record_outcome,
)
from hoa_payments.services.recorder import PaymentRequest
from hoa_payments.services.unified_payment import UnifiedPaymentService

router = APIRouter()


@router.post("/payments/unified/preview", response_model=AllocationPlanSchema)
def preview_payment(
    request_body: PreviewRequest,
    request: Request,
    service: UnifiedPaymentService = Depends(get_payment_service),
):
    """
    Show how a payment would be split across HOA dues, water bills and credit.

    Nothing is written. The returned plan must be sent back with the record
    call, which re-validates it against current state.
    """
    request_id = get_request_id(request)
    try:
        preview = service.preview(
            request_body.unit_id,
            Money(request_body.amount_cents),
            request_body.payment_date,
            excluded_bills=request_body.excluded_bills,
            waivers=request_body.waivers(),
        )
    except ValidationError as e:
        logging.warning(f"Invalid preview request: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        logging.error(f"Persistence error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Bills could not be loaded, please retry")

    preview_counter.inc()
    return AllocationPlanSchema.from_preview(preview)


@router.post("/payments/unified/record", response_model=RecordResponse)
def record_payment_endpoint(
    request_body: RecordRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    service: UnifiedPaymentService = Depends(get_payment_service),
    accounting_client: AccountingClient = Depends(get_accounting_client),
):
    """
    Record a previewed payment.

    Flow:
    1. Replay the original result if the idempotency key was already used
    2. Re-run the allocation on locked, current bills and credit
    3. Reject with 409 if it differs from the preview
    4. Update bills, append credit entries, create the transaction; commit
    5. Notify accounting in the background
    """
    start_time = time.time()
    request_id = get_request_id(request)

    if request_body.preview.unit_id != request_body.unit_id:
        record_outcome("invalid")
        raise HTTPException(status_code=400, detail="Preview belongs to a different unit")
    if request_body.preview.payment_date != request_body.payment_date:
        record_outcome("invalid")
        raise HTTPException(status_code=400, detail="Preview was made for a different payment date")

    payment_request = PaymentRequest(
        unit_id=request_body.unit_id,
        payment_amount=Money(request_body.amount_cents),
        payment_date=request_body.payment_date,
        payment_method=request_body.payment_method,
        payment_method_id=request_body.payment_method_id,
        account_id=request_body.account_id,
        account_type=request_body.account_type,
        reference=request_body.reference,
        notes=request_body.notes,
        idempotency_key=request_body.idempotency_key,
        recorded_by=get_caller_id(request),
        excluded_bills=list(request_body.excluded_bills),
        waivers=request_body.waivers(),
    )

    try:
        with record_latency_histogram.time():
            result = service.record(
                payment_request,
                request_body.preview.to_domain(),
                previewed_at=request_body.preview.generated_at,
            )

    except ValidationError as e:
        record_outcome("invalid")
        logging.warning(f"Invalid record request: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=400, detail=str(e))

    except StaleAllocationError as e:
        record_outcome("stale")
        logging.info(f"Stale preview: {e}", extra={"request_id": request_id})
        raise HTTPException(
            status_code=409,
            detail={"type": "stale_allocation", "message": f"{e}. Please preview the payment again."},
        )

    except DuplicateSubmissionError as e:
        record_outcome("duplicate")
        logging.warning(f"Duplicate submission: {e}", extra={"request_id": request_id})
        raise HTTPException(
            status_code=409,
            detail={"type": "duplicate_submission", "message": str(e), "transaction_id": e.transaction_id},
        )

    except InsufficientCreditError as e:
        record_outcome("failed")
        logging.error(f"Credit invariant violated: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    except PersistenceError as e:
        record_outcome("failed")
        logging.error(f"Persistence error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Payment could not be saved, please retry")

    except Exception as e:
        service.db.rollback()
        record_outcome("failed")
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    if result.replayed:
        record_outcome("replayed")
    else:
        record_payment(result.plan)
        background_tasks.add_task(
            accounting_client.notify_payment_recorded,
            build_payment_event(result.transaction, result.plan),
        )

    duration_ms = (time.time() - start_time) * 1000
    log_payment_recorded(
        request_id=request_id,
        unit_id=payment_request.unit_id,
        transaction_id=result.transaction.transaction_id,
        amount_cents=payment_request.payment_amount.cents,
        credit_used_cents=result.plan.credit_used.cents if result.plan else 0,
        credit_added_cents=result.plan.credit_added.cents if result.plan else 0,
        bills_paid=len({line.bill_ref for line in result.transaction.allocations if line.bill_ref}),
        replayed=result.replayed,
        duration_ms=duration_ms,
    )

    return RecordResponse(
        transaction=TransactionSchema.from_domain(result.transaction),
        credit_account=CreditStateSchema.from_domain(result.credit_account, result.credit_entries),
        replayed=result.replayed,
    )


@router.get("/payments/{transaction_id}", response_model=TransactionSchema)
def get_payment(transaction_id: str, service: UnifiedPaymentService = Depends(get_payment_service)):
    """Retrieve a recorded payment transaction with its allocation lines"""
    try:
        txn_uuid = uuid.UUID(transaction_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid transaction ID format")

    record = TransactionRepository(service.db).get_by_id(txn_uuid)
    if not record:
        raise HTTPException(status_code=404, detail="Transaction not found")

    return TransactionSchema.from_domain(transaction_to_domain(record))
