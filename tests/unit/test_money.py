"""Unit tests for integer minor-unit money"""

import pytest
from decimal import Decimal
from hoa_payments.domain.exceptions import ValidationError
from hoa_payments.domain.money import Money, money_sum


def test_arithmetic_and_ordering():
    """Test addition, subtraction and comparison stay in minor units"""
    assert Money(4600) + Money(500) == Money(5100)
    assert Money(500) - Money(4600) == Money(-4100)
    assert -Money(10) == Money(-10)
    assert Money(1) < Money(2)
    assert min(Money(3), Money(2)) == Money(2)


def test_rejects_floats_and_bools():
    """Test non-integer amounts are rejected"""
    with pytest.raises(ValidationError):
        Money(10.0)
    with pytest.raises(ValidationError):
        Money(True)
    with pytest.raises(ValidationError):
        Money("100")


def test_of_accepts_integral_decimal_only():
    """Test Decimal input must have no fractional minor units"""
    assert Money.of(Decimal("250")) == Money(250)
    assert Money.of(Money(7)) == Money(7)
    with pytest.raises(ValidationError):
        Money.of(Decimal("250.5"))


def test_money_sum():
    """Test summing an empty and non-empty iterable"""
    assert money_sum([]) == Money.zero()
    assert money_sum([Money(1), Money(2), Money(3)]) == Money(6)
