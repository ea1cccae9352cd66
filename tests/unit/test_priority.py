"""Unit tests for bill priority classes"""

from datetime import date
from hoa_payments.domain.models import Bill, BillType
from hoa_payments.domain.money import Money
from hoa_payments.domain.priority import (
    CURRENT_HOA,
    CURRENT_WATER,
    FUTURE_HOA,
    PAST_DUE_HOA,
    PAST_DUE_WATER,
    calculate_priority,
    prioritize_bills,
)

AS_OF = date(2025, 6, 15)


def test_priority_classes():
    """Test each bill type and due date maps to its class"""
    assert calculate_priority(BillType.HOA, date(2025, 5, 10), AS_OF) == PAST_DUE_HOA
    assert calculate_priority(BillType.WATER, date(2025, 5, 10), AS_OF) == PAST_DUE_WATER
    assert calculate_priority(BillType.HOA, date(2025, 6, 30), AS_OF) == CURRENT_HOA
    assert calculate_priority(BillType.WATER, date(2025, 6, 1), AS_OF) == CURRENT_WATER
    assert calculate_priority(BillType.HOA, date(2025, 7, 10), AS_OF) == FUTURE_HOA


def test_future_water_is_not_payable():
    """Test water bills due after the payment month have no priority"""
    assert calculate_priority(BillType.WATER, date(2025, 7, 10), AS_OF) is None


def test_prioritize_orders_and_filters():
    """Test ordering by class then period, dropping paid and future water bills"""

    def bill(bill_type, year, month, base):
        return Bill(
            bill_type=bill_type,
            bill_period=f"{year}-{month:02d}",
            due_date=date(year, month, 10),
            base_charge_due=Money(base),
            penalty_due=Money.zero(),
        )

    bills = [
        bill(BillType.HOA, 2025, 7, 4600),
        bill(BillType.WATER, 2025, 6, 900),
        bill(BillType.WATER, 2025, 7, 900),
        bill(BillType.HOA, 2025, 6, 4600),
        bill(BillType.WATER, 2025, 4, 800),
        bill(BillType.HOA, 2025, 5, 4600),
        bill(BillType.HOA, 2025, 3, 4600),
        bill(BillType.HOA, 2025, 2, 0),
    ]

    ordered = prioritize_bills(bills, AS_OF)

    assert [b.bill_ref for b in ordered] == [
        "hoa:2025-03",
        "hoa:2025-05",
        "water:2025-04",
        "hoa:2025-06",
        "water:2025-06",
        "hoa:2025-07",
    ]
    assert [b.priority for b in ordered] == [1, 1, 2, 3, 4, 5]
