"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from hoa_payments.domain.money import Money, money_sum


class BillType(str, Enum):
    HOA = "hoa"
    WATER = "water"


class BillStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class CreditEntryType(str, Enum):
    STARTING_BALANCE = "starting_balance"
    CREDIT_ADDED = "credit_added"
    CREDIT_USED = "credit_used"


def derive_status(remaining: Money, paid: Money) -> BillStatus:
    """Bill status from remaining due and amount already paid"""
    if remaining.is_zero:
        return BillStatus.PAID
    if paid.cents > 0:
        return BillStatus.PARTIAL
    return BillStatus.UNPAID


@dataclass
class Bill:
    """One period's outstanding obligation for a unit"""

    bill_type: BillType
    bill_period: str  # "YYYY-MM", sortable within (unit, bill_type)
    due_date: date
    base_charge_due: Money  # remaining unpaid base charge
    penalty_due: Money  # remaining unpaid penalty
    priority: int = 0
    amount_paid: Money = field(default_factory=Money.zero)

    @property
    def bill_ref(self) -> str:
        return f"{self.bill_type.value}:{self.bill_period}"

    @property
    def remaining(self) -> Money:
        return self.base_charge_due + self.penalty_due

    @property
    def status(self) -> BillStatus:
        return derive_status(self.remaining, self.amount_paid)

    @property
    def sort_key(self) -> tuple:
        return (self.priority, self.bill_period, self.bill_type.value)


@dataclass
class BillAllocation:
    """Portion of a payment applied to one bill"""

    bill_ref: str
    bill_type: BillType
    bill_period: str
    priority: int
    base_charge_due: Money  # before this payment
    penalty_due: Money  # before this payment
    base_charge_payment: Money
    penalty_payment: Money
    total_payment: Money
    resulting_status: BillStatus
    penalty_waived: Money = field(default_factory=Money.zero)
    excluded: bool = False  # listed for display, never allocated to


@dataclass
class PenaltyWaiver:
    """Administrator decision to forgive part or all of a bill's penalty"""

    bill_ref: str
    amount: Money  # capped at the penalty actually due
    reason: str
    notes: Optional[str] = None


@dataclass
class AllocationPlan:
    """How one payment is split across bills and credit"""

    payment_amount: Money
    current_credit_balance: Money
    bill_allocations: List[BillAllocation]
    credit_used: Money
    credit_added: Money
    new_credit_balance: Money
    total_due: Money
    total_available_funds: Money

    @property
    def total_applied(self) -> Money:
        return money_sum(a.total_payment for a in self.bill_allocations)

    @property
    def total_waived(self) -> Money:
        return money_sum(a.penalty_waived for a in self.bill_allocations)

    def is_balanced(self) -> bool:
        """Central invariant: applied + added == paid + used"""
        return self.total_applied + self.credit_added == self.payment_amount + self.credit_used


@dataclass
class CreditHistoryEntry:
    """Single append-only credit ledger line"""

    id: str
    timestamp: datetime
    type: CreditEntryType
    amount: Money
    balance_before: Money
    balance_after: Money
    transaction_id: Optional[str] = None
    notes: str = ""
    source: str = "unified_payment"


@dataclass
class TransactionAllocation:
    """One split line of a payment transaction"""

    id: str  # alloc_001, alloc_002, ...
    type: str  # hoa_bill, hoa_penalty, water_bill, water_penalty, account_credit
    target_id: str
    target_name: str
    category_id: str
    category_name: str
    amount: Money  # signed; credit usage is negative
    bill_ref: Optional[str] = None


@dataclass
class PaymentTransaction:
    """Financial-ledger record created for a recorded payment"""

    transaction_id: str
    unit_id: str
    amount: Money
    payment_date: date
    payment_method: str
    account_id: str
    account_type: str
    allocations: List[TransactionAllocation]
    idempotency_key: str
    payment_method_id: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    recorded_by: str = "system"
    created_at: Optional[datetime] = None
