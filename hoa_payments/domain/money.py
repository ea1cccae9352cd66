"""Fixed-point currency amounts in integer minor units (centavos)"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from hoa_payments.domain.exceptions import ValidationError


@dataclass(frozen=True, order=True)
class Money:
    """
    Immutable amount of money counted in minor units.

    Only real integers are accepted. Floats are rejected even when they hold
    an integral value, so a pesos amount can never slip in where centavos are
    expected.

    Example:
        Money(4600) + Money(500) == Money(5100)
    """

    cents: int

    def __post_init__(self) -> None:
        if isinstance(self.cents, bool) or not isinstance(self.cents, int):
            raise ValidationError(f"Money requires integer minor units, got {type(self.cents).__name__}")

    @classmethod
    def of(cls, value: Any) -> "Money":
        """Build Money from a boundary value, rejecting fractional minor units"""
        if isinstance(value, Money):
            return value
        if isinstance(value, Decimal):
            if value != value.to_integral_value():
                raise ValidationError(f"Amount {value} has fractional minor units")
            return cls(int(value))
        return cls(value)

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @property
    def is_zero(self) -> bool:
        return self.cents == 0

    @property
    def is_negative(self) -> bool:
        return self.cents < 0

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.cents + other.cents)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.cents - other.cents)

    def __neg__(self) -> "Money":
        return Money(-self.cents)

    def __int__(self) -> int:
        return self.cents


def money_sum(amounts) -> Money:
    """Sum an iterable of Money (empty sum is zero)"""
    total = Money.zero()
    for amount in amounts:
        total = total + amount
    return total
