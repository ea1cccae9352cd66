"""Property-based tests for the allocation engine"""

from datetime import date
from hypothesis import given, strategies as st
from hoa_payments.domain.allocator import allocate_payment
from hoa_payments.domain.models import Bill, BillStatus, BillType
from hoa_payments.domain.money import Money, money_sum
from hoa_payments.domain.priority import prioritize_bills

AS_OF = date(2025, 6, 15)


@st.composite
def bill_sets(draw):
    """Distinct bills spread over past, current and future months"""
    count = draw(st.integers(min_value=0, max_value=8))
    bills = []
    seen = set()
    for _ in range(count):
        bill_type = draw(st.sampled_from([BillType.HOA, BillType.WATER]))
        month = draw(st.integers(min_value=1, max_value=12))
        if (bill_type, month) in seen:
            continue
        seen.add((bill_type, month))
        bills.append(
            Bill(
                bill_type=bill_type,
                bill_period=f"2025-{month:02d}",
                due_date=date(2025, month, 10),
                base_charge_due=Money(draw(st.integers(min_value=0, max_value=50_000))),
                penalty_due=Money(draw(st.integers(min_value=0, max_value=5_000))),
            )
        )
    return prioritize_bills(bills, AS_OF)


payments = st.integers(min_value=1, max_value=200_000).map(Money)
credits = st.integers(min_value=0, max_value=100_000).map(Money)


@given(payments, credits, bill_sets())
def test_allocation_balances_exactly(payment, credit, bills):
    """Test applied + added == paid + used for every input"""
    plan = allocate_payment(payment, credit, bills)

    assert plan.total_applied + plan.credit_added == plan.payment_amount + plan.credit_used
    assert plan.new_credit_balance == credit - plan.credit_used + plan.credit_added


@given(payments, credits, bill_sets())
def test_amounts_never_negative_or_over_due(payment, credit, bills):
    """Test every amount is non-negative and no bill is overpaid"""
    plan = allocate_payment(payment, credit, bills)

    assert not plan.credit_used.is_negative
    assert not plan.credit_added.is_negative
    assert not plan.new_credit_balance.is_negative
    assert plan.credit_used <= credit
    for allocation in plan.bill_allocations:
        assert not allocation.base_charge_payment.is_negative
        assert not allocation.penalty_payment.is_negative
        assert allocation.penalty_payment <= allocation.penalty_due
        assert allocation.base_charge_payment <= allocation.base_charge_due
        assert allocation.total_payment == allocation.base_charge_payment + allocation.penalty_payment


@given(payments, credits, bill_sets())
def test_cash_spent_before_credit(payment, credit, bills):
    """Test credit is only used or added, never both"""
    plan = allocate_payment(payment, credit, bills)

    assert plan.credit_used.is_zero or plan.credit_added.is_zero
    if plan.total_applied <= payment:
        assert plan.credit_used.is_zero


@given(payments, credits, bill_sets())
def test_later_bills_wait_for_earlier_ones(payment, credit, bills):
    """Test a bill receives funds only after every earlier bill is fully paid"""
    plan = allocate_payment(payment, credit, bills)

    for index, allocation in enumerate(plan.bill_allocations):
        if not allocation.total_payment.is_zero:
            assert all(a.resulting_status == BillStatus.PAID for a in plan.bill_allocations[:index])


@given(payments, credits, bill_sets())
def test_funds_not_stranded(payment, credit, bills):
    """Test available funds are applied until bills or funds run out"""
    plan = allocate_payment(payment, credit, bills)

    total_due = money_sum(b.remaining for b in bills)
    assert plan.total_applied == min(total_due, payment + credit)


@given(payments, credits, bill_sets())
def test_allocation_is_deterministic(payment, credit, bills):
    """Test repeated runs return equal plans"""
    assert allocate_payment(payment, credit, bills) == allocate_payment(payment, credit, bills)


@given(bill_sets())
def test_future_water_never_offered(bills):
    """Test prioritised bills exclude future water bills"""
    for bill in bills:
        assert not (bill.bill_type == BillType.WATER and bill.due_date > AS_OF and bill.due_date.month != AS_OF.month)
