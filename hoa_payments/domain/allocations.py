"""Transaction allocation lines for split payment transactions"""

from typing import Dict, List, Optional, Sequence

from hoa_payments.domain.exceptions import ValidationError
from hoa_payments.domain.models import AllocationPlan, BillType, PenaltyWaiver, TransactionAllocation
from hoa_payments.domain.money import Money, money_sum

CATEGORIES: Dict[BillType, Dict[str, str]] = {
    BillType.HOA: {
        "base_id": "hoa-dues",
        "base_name": "HOA Dues",
        "penalty_id": "hoa-penalties",
        "penalty_name": "HOA Penalties",
    },
    BillType.WATER: {
        "base_id": "water-consumption",
        "base_name": "Water Consumption",
        "penalty_id": "water-penalties",
        "penalty_name": "Water Penalties",
    },
}

ACCOUNT_CREDIT_CATEGORY_ID = "account-credit"
ACCOUNT_CREDIT_CATEGORY_NAME = "Account Credit"


def allocation_id(index: int) -> str:
    """alloc_001, alloc_002, ..."""
    return f"alloc_{index:03d}"


def build_transaction_allocations(unit_id: str, plan: AllocationPlan) -> List[TransactionAllocation]:
    """
    Turn an allocation plan into transaction split lines.

    Each bill yields a base charge line and a penalty line when the
    respective payment is non-zero. Credit movement adds one signed
    "Account Credit" line: positive for an overpayment deposited as credit,
    negative for credit drawn to pay bills. The signed line amounts always
    sum to the payment amount.

    Raises:
        ValidationError: plan is not balanced
    """
    lines: List[TransactionAllocation] = []

    for bill in plan.bill_allocations:
        category = CATEGORIES[bill.bill_type]
        prefix = bill.bill_type.value
        if not bill.base_charge_payment.is_zero:
            lines.append(
                TransactionAllocation(
                    id=allocation_id(len(lines) + 1),
                    type=f"{prefix}_bill",
                    target_id=f"bill_{bill.bill_ref}",
                    target_name=f"{bill.bill_period} - Unit {unit_id}",
                    category_id=category["base_id"],
                    category_name=category["base_name"],
                    amount=bill.base_charge_payment,
                    bill_ref=bill.bill_ref,
                )
            )
        if not bill.penalty_payment.is_zero:
            lines.append(
                TransactionAllocation(
                    id=allocation_id(len(lines) + 1),
                    type=f"{prefix}_penalty",
                    target_id=f"penalty_{bill.bill_ref}",
                    target_name=f"{bill.bill_period} Penalties - Unit {unit_id}",
                    category_id=category["penalty_id"],
                    category_name=category["penalty_name"],
                    amount=bill.penalty_payment,
                    bill_ref=bill.bill_ref,
                )
            )

    credit_delta = plan.credit_added - plan.credit_used
    if not credit_delta.is_zero:
        lines.append(
            TransactionAllocation(
                id=allocation_id(len(lines) + 1),
                type="account_credit",
                target_id=f"credit_{unit_id}",
                target_name=f"Account Credit - Unit {unit_id}",
                category_id=ACCOUNT_CREDIT_CATEGORY_ID,
                category_name=ACCOUNT_CREDIT_CATEGORY_NAME,
                amount=credit_delta,
            )
        )

    if money_sum(line.amount for line in lines) != plan.payment_amount:
        raise ValidationError("Allocation lines do not sum to the payment amount")

    return lines


def _format_cents(amount: Money) -> str:
    return f"{amount.cents // 100:,}.{amount.cents % 100:02d}"


def waiver_notes(plan: AllocationPlan, waivers: Sequence[PenaltyWaiver]) -> Optional[str]:
    """
    One-line summary of the penalties waived by this payment.

    Amounts are the waived amounts actually applied, which may be less than
    requested when the penalty due was smaller.
    """
    applied = {a.bill_ref: a.penalty_waived for a in plan.bill_allocations}
    parts = []
    for waiver in waivers:
        amount = applied.get(waiver.bill_ref, Money.zero())
        if amount.is_zero:
            continue
        suffix = f" ({waiver.notes})" if waiver.notes else ""
        parts.append(f"{waiver.bill_ref} ({_format_cents(amount)}) - {waiver.reason}{suffix}")
    if not parts:
        return None
    return "Penalties waived: " + "; ".join(parts)


def transaction_notes(
    user_notes: Optional[str],
    plan: AllocationPlan,
    waivers: Sequence[PenaltyWaiver],
) -> Optional[str]:
    """Waiver summary first, then whatever the cashier typed"""
    lines = [n for n in (waiver_notes(plan, waivers), user_notes) if n]
    return "\n".join(lines) or None
