"""Pydantic schemas for API request/response validation

All monetary fields are integer minor units (centavos). Floats and numeric
strings are rejected rather than rounded.
"""

from datetime import date, datetime
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, field_validator

from hoa_payments.config import settings
from hoa_payments.domain.credit import CreditAccount
from hoa_payments.domain.models import (
    AllocationPlan,
    Bill,
    BillAllocation,
    BillStatus,
    BillType,
    CreditEntryType,
    CreditHistoryEntry,
    PaymentTransaction,
    PenaltyWaiver,
)
from hoa_payments.domain.money import Money
from hoa_payments.services.unified_payment import Preview
from hoa_payments.utils.date_utils import add_years

Cents = Annotated[int, Field(ge=0, strict=True)]


class PenaltyWaiverSchema(BaseModel):
    """Penalty forgiven on one bill before the payment is allocated"""

    bill_ref: str = Field(..., min_length=1)
    amount_cents: int = Field(..., gt=0, strict=True)
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None

    def to_domain(self) -> PenaltyWaiver:
        return PenaltyWaiver(
            bill_ref=self.bill_ref,
            amount=Money(self.amount_cents),
            reason=self.reason,
            notes=self.notes,
        )


class PaymentInput(BaseModel):
    """Fields shared by preview and record requests"""

    unit_id: str = Field(..., min_length=1, description="Unit identifier")
    amount_cents: int = Field(..., gt=0, strict=True, description="Payment amount in centavos")
    payment_date: date
    excluded_bills: List[str] = Field(default_factory=list, description="bill_refs to leave unpaid")
    waived_penalties: List[PenaltyWaiverSchema] = Field(default_factory=list)

    @field_validator("unit_id")
    @classmethod
    def unit_id_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("unit_id cannot be blank")
        return value

    @field_validator("amount_cents")
    @classmethod
    def amount_within_limit(cls, value: int) -> int:
        if value > settings.max_payment_cents:
            raise ValueError(f"amount_cents exceeds maximum allowed ({settings.max_payment_cents})")
        return value

    @field_validator("payment_date")
    @classmethod
    def payment_date_within_window(cls, value: date) -> date:
        today = date.today()
        if value > add_years(today, settings.payment_date_max_future_years):
            raise ValueError(f"payment_date cannot be more than {settings.payment_date_max_future_years} year(s) in the future")
        if value < add_years(today, -settings.payment_date_max_past_years):
            raise ValueError(f"payment_date cannot be more than {settings.payment_date_max_past_years} years in the past")
        return value

    def waivers(self) -> List[PenaltyWaiver]:
        return [w.to_domain() for w in self.waived_penalties]


class PreviewRequest(PaymentInput):
    """Request body for POST /v1/payments/unified/preview"""

    pass


class BillAllocationSchema(BaseModel):
    """Allocation of a payment to one bill"""

    bill_ref: str
    bill_type: BillType
    bill_period: str
    priority: int = Field(..., strict=True)
    base_charge_due_cents: Cents
    penalty_due_cents: Cents
    base_charge_payment_cents: Cents
    penalty_payment_cents: Cents
    total_payment_cents: Cents
    resulting_status: BillStatus
    penalty_waived_cents: Cents = 0
    excluded: bool = False

    @classmethod
    def from_domain(cls, allocation: BillAllocation) -> "BillAllocationSchema":
        return cls(
            bill_ref=allocation.bill_ref,
            bill_type=allocation.bill_type,
            bill_period=allocation.bill_period,
            priority=allocation.priority,
            base_charge_due_cents=allocation.base_charge_due.cents,
            penalty_due_cents=allocation.penalty_due.cents,
            base_charge_payment_cents=allocation.base_charge_payment.cents,
            penalty_payment_cents=allocation.penalty_payment.cents,
            total_payment_cents=allocation.total_payment.cents,
            resulting_status=allocation.resulting_status,
            penalty_waived_cents=allocation.penalty_waived.cents,
            excluded=allocation.excluded,
        )

    def to_domain(self) -> BillAllocation:
        return BillAllocation(
            bill_ref=self.bill_ref,
            bill_type=self.bill_type,
            bill_period=self.bill_period,
            priority=self.priority,
            base_charge_due=Money(self.base_charge_due_cents),
            penalty_due=Money(self.penalty_due_cents),
            base_charge_payment=Money(self.base_charge_payment_cents),
            penalty_payment=Money(self.penalty_payment_cents),
            total_payment=Money(self.total_payment_cents),
            resulting_status=self.resulting_status,
            penalty_waived=Money(self.penalty_waived_cents),
            excluded=self.excluded,
        )


class AllocationPlanSchema(BaseModel):
    """Response for preview; sent back unchanged in the record request"""

    unit_id: str
    payment_date: date
    payment_amount_cents: int = Field(..., gt=0, strict=True)
    current_credit_balance_cents: Cents
    bill_allocations: List[BillAllocationSchema]
    credit_used_cents: Cents
    credit_added_cents: Cents
    new_credit_balance_cents: Cents
    total_due_cents: Cents
    total_available_funds_cents: Cents
    generated_at: datetime

    @classmethod
    def from_preview(cls, preview: Preview) -> "AllocationPlanSchema":
        plan = preview.plan
        return cls(
            unit_id=preview.unit_id,
            payment_date=preview.payment_date,
            payment_amount_cents=plan.payment_amount.cents,
            current_credit_balance_cents=plan.current_credit_balance.cents,
            bill_allocations=[BillAllocationSchema.from_domain(a) for a in plan.bill_allocations],
            credit_used_cents=plan.credit_used.cents,
            credit_added_cents=plan.credit_added.cents,
            new_credit_balance_cents=plan.new_credit_balance.cents,
            total_due_cents=plan.total_due.cents,
            total_available_funds_cents=plan.total_available_funds.cents,
            generated_at=preview.generated_at,
        )

    def to_domain(self) -> AllocationPlan:
        return AllocationPlan(
            payment_amount=Money(self.payment_amount_cents),
            current_credit_balance=Money(self.current_credit_balance_cents),
            bill_allocations=[a.to_domain() for a in self.bill_allocations],
            credit_used=Money(self.credit_used_cents),
            credit_added=Money(self.credit_added_cents),
            new_credit_balance=Money(self.new_credit_balance_cents),
            total_due=Money(self.total_due_cents),
            total_available_funds=Money(self.total_available_funds_cents),
        )


class RecordRequest(PaymentInput):
    """Request body for POST /v1/payments/unified/record"""

    payment_method: str = Field(..., min_length=1)
    payment_method_id: Optional[str] = None
    account_id: str = Field(..., min_length=1)
    account_type: str = Field(..., min_length=1)
    reference: Optional[str] = None
    notes: Optional[str] = None
    preview: AllocationPlanSchema
    idempotency_key: str = Field(..., min_length=1, max_length=200)


class AllocationLineSchema(BaseModel):
    """Split line of a transaction (signed amount)"""

    id: str
    type: str
    target_id: str
    target_name: str
    category_id: str
    category_name: str
    amount_cents: int
    bill_ref: Optional[str] = None


class TransactionSchema(BaseModel):
    """Recorded payment transaction"""

    transaction_id: str
    unit_id: str
    amount_cents: int
    payment_date: date
    payment_method: str
    payment_method_id: Optional[str] = None
    account_id: str
    account_type: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    recorded_by: str
    idempotency_key: str
    allocations: List[AllocationLineSchema]
    created_at: Optional[str] = None

    @classmethod
    def from_domain(cls, txn: PaymentTransaction) -> "TransactionSchema":
        return cls(
            transaction_id=txn.transaction_id,
            unit_id=txn.unit_id,
            amount_cents=txn.amount.cents,
            payment_date=txn.payment_date,
            payment_method=txn.payment_method,
            payment_method_id=txn.payment_method_id,
            account_id=txn.account_id,
            account_type=txn.account_type,
            reference=txn.reference,
            notes=txn.notes,
            recorded_by=txn.recorded_by,
            idempotency_key=txn.idempotency_key,
            allocations=[
                AllocationLineSchema(
                    id=line.id,
                    type=line.type,
                    target_id=line.target_id,
                    target_name=line.target_name,
                    category_id=line.category_id,
                    category_name=line.category_name,
                    amount_cents=line.amount.cents,
                    bill_ref=line.bill_ref,
                )
                for line in txn.allocations
            ],
            created_at=txn.created_at.isoformat() if txn.created_at else None,
        )


class CreditEntrySchema(BaseModel):
    """Single credit ledger entry"""

    id: str
    timestamp: datetime
    type: CreditEntryType
    amount_cents: int
    balance_before_cents: int
    balance_after_cents: int
    transaction_id: Optional[str] = None
    notes: str
    source: str

    @classmethod
    def from_domain(cls, entry: CreditHistoryEntry) -> "CreditEntrySchema":
        return cls(
            id=entry.id,
            timestamp=entry.timestamp,
            type=entry.type,
            amount_cents=entry.amount.cents,
            balance_before_cents=entry.balance_before.cents,
            balance_after_cents=entry.balance_after.cents,
            transaction_id=entry.transaction_id,
            notes=entry.notes,
            source=entry.source,
        )


class CreditStateSchema(BaseModel):
    """Credit account after a payment"""

    unit_id: str
    current_balance_cents: int
    entries: List[CreditEntrySchema]

    @classmethod
    def from_domain(cls, account: CreditAccount, entries: List[CreditHistoryEntry]) -> "CreditStateSchema":
        return cls(
            unit_id=account.unit_id,
            current_balance_cents=account.current_balance.cents,
            entries=[CreditEntrySchema.from_domain(e) for e in entries],
        )


class RecordResponse(BaseModel):
    """Response for POST /v1/payments/unified/record"""

    transaction: TransactionSchema
    credit_account: CreditStateSchema
    replayed: bool = False


class BillSchema(BaseModel):
    """Outstanding bill"""

    bill_ref: str
    bill_type: BillType
    bill_period: str
    due_date: date
    priority: int
    base_charge_due_cents: int
    penalty_due_cents: int
    total_due_cents: int
    status: BillStatus

    @classmethod
    def from_domain(cls, bill: Bill) -> "BillSchema":
        return cls(
            bill_ref=bill.bill_ref,
            bill_type=bill.bill_type,
            bill_period=bill.bill_period,
            due_date=bill.due_date,
            priority=bill.priority,
            base_charge_due_cents=bill.base_charge_due.cents,
            penalty_due_cents=bill.penalty_due.cents,
            total_due_cents=bill.remaining.cents,
            status=bill.status,
        )


class OutstandingBillsResponse(BaseModel):
    """Response for GET /v1/units/{unit_id}/bills"""

    unit_id: str
    as_of: date
    total_due_cents: int
    bills: List[BillSchema]


class CreditHistoryResponse(BaseModel):
    """Response for GET /v1/units/{unit_id}/credit"""

    unit_id: str
    current_balance_cents: int
    history: List[CreditEntrySchema]
