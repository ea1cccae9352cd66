"""Unit tests for transaction split lines"""

from datetime import date
from hoa_payments.domain.allocations import build_transaction_allocations, transaction_notes
from hoa_payments.domain.allocator import allocate_payment
from hoa_payments.domain.models import Bill, BillType, PenaltyWaiver
from hoa_payments.domain.money import Money, money_sum


def _bills():
    return [
        Bill(
            bill_type=BillType.HOA,
            bill_period="2025-05",
            due_date=date(2025, 5, 10),
            base_charge_due=Money(4500),
            penalty_due=Money(500),
            priority=1,
        ),
        Bill(
            bill_type=BillType.WATER,
            bill_period="2025-05",
            due_date=date(2025, 5, 10),
            base_charge_due=Money(1000),
            penalty_due=Money.zero(),
            priority=2,
        ),
    ]


def test_lines_per_component_with_overpayment():
    """Test base, penalty and positive credit lines with sequential ids"""
    plan = allocate_payment(Money(7000), Money.zero(), _bills())

    lines = build_transaction_allocations("A-101", plan)

    assert [line.id for line in lines] == ["alloc_001", "alloc_002", "alloc_003", "alloc_004"]
    assert [line.type for line in lines] == ["hoa_bill", "hoa_penalty", "water_bill", "account_credit"]
    assert [line.amount.cents for line in lines] == [4500, 500, 1000, 1000]
    assert lines[0].category_id == "hoa-dues"
    assert lines[1].category_name == "HOA Penalties"
    assert lines[2].category_id == "water-consumption"
    assert lines[3].category_name == "Account Credit"
    assert lines[3].bill_ref is None
    assert money_sum(line.amount for line in lines) == Money(7000)


def test_credit_usage_is_negative_line():
    """Test credit drawn to pay bills appears as a negative line"""
    plan = allocate_payment(Money(5000), Money(2000), _bills())

    lines = build_transaction_allocations("A-101", plan)

    assert lines[-1].type == "account_credit"
    assert lines[-1].amount == Money(-1000)
    assert money_sum(line.amount for line in lines) == Money(5000)


def test_no_credit_line_on_exact_payment():
    """Test no account credit line when the payment matches the bills"""
    plan = allocate_payment(Money(6000), Money.zero(), _bills())

    lines = build_transaction_allocations("A-101", plan)

    assert all(line.type != "account_credit" for line in lines)


def test_waived_penalty_noted_but_not_a_line():
    """Test waivers add no split line and are summarised in the transaction notes"""
    waivers = [
        PenaltyWaiver(bill_ref="hoa:2025-05", amount=Money(150_000), reason="Board approval", notes="Minutes 12"),
    ]
    plan = allocate_payment(Money(5500), Money.zero(), _bills(), waivers=waivers)

    lines = build_transaction_allocations("A-101", plan)
    notes = transaction_notes("Paid at front desk", plan, waivers)

    assert [line.type for line in lines] == ["hoa_bill", "water_bill"]
    assert money_sum(line.amount for line in lines) == Money(5500)
    assert notes == "Penalties waived: hoa:2025-05 (5.00) - Board approval (Minutes 12)\nPaid at front desk"
    assert transaction_notes(None, plan, []) is None
