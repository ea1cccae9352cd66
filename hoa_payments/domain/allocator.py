"""Priority allocation engine - splits one payment across bills and credit"""

import logging
from typing import Dict, Iterable, List, Sequence

from hoa_payments.domain.exceptions import ValidationError
from hoa_payments.domain.models import AllocationPlan, Bill, BillAllocation, PenaltyWaiver, derive_status
from hoa_payments.domain.money import Money, money_sum

logger = logging.getLogger(__name__)


def _validate_inputs(payment_amount: Money, current_credit_balance: Money, bills: Sequence[Bill]) -> None:
    if payment_amount.cents <= 0:
        raise ValidationError(f"Payment amount must be positive, got {payment_amount.cents}")
    if current_credit_balance.is_negative:
        raise ValidationError(f"Credit balance cannot be negative, got {current_credit_balance.cents}")

    seen = set()
    for bill in bills:
        if bill.base_charge_due.is_negative or bill.penalty_due.is_negative:
            raise ValidationError(f"Bill {bill.bill_ref} has a negative amount due")
        if bill.bill_ref in seen:
            raise ValidationError(f"Bill {bill.bill_ref} appears more than once")
        seen.add(bill.bill_ref)

    keys = [b.sort_key for b in bills]
    if keys != sorted(keys):
        raise ValidationError("Bills must be ordered by priority, then bill period")


def _validate_adjustments(
    bills: Sequence[Bill],
    excluded: set,
    waivers: Sequence[PenaltyWaiver],
) -> Dict[str, Money]:
    """Check exclusions and waivers refer to payable bills; return waiver amount per bill"""
    known = {b.bill_ref for b in bills}
    for ref in excluded:
        if ref not in known:
            raise ValidationError(f"Excluded bill {ref} is not outstanding")

    waived: Dict[str, Money] = {}
    for waiver in waivers:
        amount = Money.of(waiver.amount)
        if waiver.bill_ref not in known:
            raise ValidationError(f"Waived bill {waiver.bill_ref} is not outstanding")
        if waiver.bill_ref in excluded:
            raise ValidationError(f"Bill {waiver.bill_ref} cannot be both excluded and waived")
        if waiver.bill_ref in waived:
            raise ValidationError(f"Bill {waiver.bill_ref} has more than one penalty waiver")
        if amount.cents <= 0:
            raise ValidationError(f"Waiver for {waiver.bill_ref} must be positive, got {amount.cents}")
        if not waiver.reason or not waiver.reason.strip():
            raise ValidationError(f"Waiver for {waiver.bill_ref} needs a reason")
        waived[waiver.bill_ref] = amount
    return waived


def _excluded_allocation(bill: Bill) -> BillAllocation:
    return BillAllocation(
        bill_ref=bill.bill_ref,
        bill_type=bill.bill_type,
        bill_period=bill.bill_period,
        priority=bill.priority,
        base_charge_due=bill.base_charge_due,
        penalty_due=bill.penalty_due,
        base_charge_payment=Money.zero(),
        penalty_payment=Money.zero(),
        total_payment=Money.zero(),
        resulting_status=bill.status,
        excluded=True,
    )


def _allocate_to_bill(bill: Bill, funds: Money, waiver: Money) -> BillAllocation:
    """Pay one bill from available funds: waiver first, then penalty, then base charge"""
    waived = min(waiver, bill.penalty_due)
    penalty_left = bill.penalty_due - waived
    remaining = bill.remaining - waived

    amount_for_bill = min(funds, remaining)
    penalty_payment = min(amount_for_bill, penalty_left)
    base_payment = amount_for_bill - penalty_payment

    return BillAllocation(
        bill_ref=bill.bill_ref,
        bill_type=bill.bill_type,
        bill_period=bill.bill_period,
        priority=bill.priority,
        base_charge_due=bill.base_charge_due,
        penalty_due=bill.penalty_due,
        base_charge_payment=base_payment,
        penalty_payment=penalty_payment,
        total_payment=amount_for_bill,
        resulting_status=derive_status(remaining - amount_for_bill, bill.amount_paid + amount_for_bill),
        penalty_waived=waived,
    )


def allocate_payment(
    payment_amount: Money,
    current_credit_balance: Money,
    bills: Sequence[Bill],
    excluded_bills: Iterable[str] = (),
    waivers: Sequence[PenaltyWaiver] = (),
) -> AllocationPlan:
    """
    Split a payment across outstanding bills in priority order.

    Algorithm:
    1. Available funds = payment + current credit. Credit is only eligible;
       it is consumed below only to the extent bills are actually paid.
    2. Walk bills in the given order. Excluded bills are listed with a zero
       allocation and their status unchanged. A waiver lowers the bill's
       penalty (never below zero) before anything is paid. Each other bill
       takes min(funds, remaining), paying its penalty before its base
       charge. Once funds reach zero the remaining bills get a zero
       allocation and keep their status.
    3. Cash is spent before credit. With S the total applied to bills:
       S <= payment: nothing used, payment - S deposited as new credit
       S >  payment: S - payment drawn from credit, nothing deposited

    Running short is not an error; it is a partial allocation. Only malformed
    input raises.

    Args:
        payment_amount: Cash received, must be positive
        current_credit_balance: Unit credit before this payment
        bills: Outstanding bills already sorted by (priority, bill_period)
        excluded_bills: bill_refs the payer chose not to pay now
        waivers: Penalty waivers, at most one per bill

    Returns:
        AllocationPlan satisfying sum(total_payment) + credit_added ==
        payment_amount + credit_used

    Raises:
        ValidationError: Non-positive payment, negative credit or dues,
            duplicate or unsorted bills, exclusions or waivers for bills
            that are not outstanding

    Example:
        One bill (penalty 500, base 4500), payment 3000, no credit
        → penalty 500, base 2500, status partial, no credit movement
    """
    payment_amount = Money.of(payment_amount)
    current_credit_balance = Money.of(current_credit_balance)
    _validate_inputs(payment_amount, current_credit_balance, bills)
    excluded = set(excluded_bills)
    waived = _validate_adjustments(bills, excluded, waivers)

    total_available = payment_amount + current_credit_balance
    remaining_funds = total_available

    allocations: List[BillAllocation] = []
    for bill in bills:
        if bill.remaining.is_zero:
            continue
        if bill.bill_ref in excluded:
            allocations.append(_excluded_allocation(bill))
            continue
        allocation = _allocate_to_bill(bill, remaining_funds, waived.get(bill.bill_ref, Money.zero()))
        remaining_funds = remaining_funds - allocation.total_payment
        allocations.append(allocation)

    applied = money_sum(a.total_payment for a in allocations)
    if applied <= payment_amount:
        credit_used = Money.zero()
        credit_added = payment_amount - applied
    else:
        credit_used = applied - payment_amount
        credit_added = Money.zero()

    plan = AllocationPlan(
        payment_amount=payment_amount,
        current_credit_balance=current_credit_balance,
        bill_allocations=allocations,
        credit_used=credit_used,
        credit_added=credit_added,
        new_credit_balance=current_credit_balance - credit_used + credit_added,
        total_due=money_sum(
            a.base_charge_due + a.penalty_due - a.penalty_waived for a in allocations if not a.excluded
        ),
        total_available_funds=total_available,
    )

    logger.debug(
        "Allocation computed",
        extra={
            "payment_cents": payment_amount.cents,
            "bills_considered": len(allocations),
            "bills_excluded": len(excluded),
            "waived_cents": plan.total_waived.cents,
            "applied_cents": applied.cents,
            "credit_used_cents": credit_used.cents,
            "credit_added_cents": credit_added.cents,
        },
    )
    return plan
