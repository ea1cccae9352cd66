"""Bill priority rules - which obligations a payment reaches first"""

from datetime import date
from typing import Iterable, List, Optional

from hoa_payments.domain.models import Bill, BillType
from hoa_payments.utils.date_utils import same_month

PAST_DUE_HOA = 1
PAST_DUE_WATER = 2
CURRENT_HOA = 3
CURRENT_WATER = 4
FUTURE_HOA = 5


def calculate_priority(bill_type: BillType, due_date: date, as_of: date) -> Optional[int]:
    """
    Priority class of a bill relative to the payment date.

    1. Past due HOA dues
    2. Past due water bills
    3. Current month HOA dues
    4. Current month water bills
    5. Future HOA dues (prepayment allowed)

    Water is billed after consumption, so future water bills return None and
    are never offered to a payment.
    """
    if same_month(due_date, as_of):
        return CURRENT_HOA if bill_type == BillType.HOA else CURRENT_WATER
    if due_date < as_of:
        return PAST_DUE_HOA if bill_type == BillType.HOA else PAST_DUE_WATER
    if bill_type == BillType.HOA:
        return FUTURE_HOA
    return None


def prioritize_bills(bills: Iterable[Bill], as_of: date) -> List[Bill]:
    """
    Assign priorities and return payable bills in allocation order.

    Bills with nothing remaining are dropped. Order is priority, then
    bill_period ascending (oldest first).
    """
    payable = []
    for bill in bills:
        if bill.remaining.is_zero:
            continue
        priority = calculate_priority(bill.bill_type, bill.due_date, as_of)
        if priority is None:
            continue
        bill.priority = priority
        payable.append(bill)

    return sorted(payable, key=lambda b: b.sort_key)
