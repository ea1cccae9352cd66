"""Unit credit account with an append-only balance history"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from hoa_payments.domain.exceptions import InsufficientCreditError, ValidationError
from hoa_payments.domain.models import CreditEntryType, CreditHistoryEntry
from hoa_payments.domain.money import Money


@dataclass
class CreditAccount:
    """
    Credit balance held for a unit.

    The balance is never negative and always equals the balance_after of the
    last history entry. Entries are only ever appended.
    """

    unit_id: str
    current_balance: Money = field(default_factory=Money.zero)
    history: List[CreditHistoryEntry] = field(default_factory=list)

    def append_entry(
        self,
        entry_type: CreditEntryType,
        amount: Money,
        transaction_id: Optional[str] = None,
        notes: str = "",
        source: str = "unified_payment",
        timestamp: Optional[datetime] = None,
    ) -> CreditHistoryEntry:
        """
        Append one ledger entry and move the balance with it.

        Raises:
            ValidationError: amount is not positive, or a starting balance is
                added to an account that already has history
            InsufficientCreditError: credit_used exceeds the current balance
        """
        amount = Money.of(amount)
        if amount.cents <= 0:
            raise ValidationError(f"Credit entry amount must be positive, got {amount.cents}")

        before = self.current_balance
        if entry_type == CreditEntryType.STARTING_BALANCE:
            if self.history:
                raise ValidationError(f"Unit {self.unit_id} already has credit history; starting balance not allowed")
            after = before + amount
        elif entry_type == CreditEntryType.CREDIT_ADDED:
            after = before + amount
        elif entry_type == CreditEntryType.CREDIT_USED:
            if amount > before:
                raise InsufficientCreditError(
                    f"Unit {self.unit_id} has {before.cents} credit, cannot use {amount.cents}"
                )
            after = before - amount
        else:
            raise ValidationError(f"Unknown credit entry type: {entry_type}")

        entry = CreditHistoryEntry(
            id=str(uuid.uuid4()),
            timestamp=timestamp or datetime.now(timezone.utc),
            type=entry_type,
            amount=amount,
            balance_before=before,
            balance_after=after,
            transaction_id=transaction_id,
            notes=notes,
            source=source,
        )
        self.history.append(entry)
        self.current_balance = after
        return entry


def verify_history_chain(account: CreditAccount) -> None:
    """
    Check the before/after chain of a credit history.

    Raises:
        ValidationError: on the first broken link
    """
    expected_before = Money.zero()
    for index, entry in enumerate(account.history):
        if entry.balance_before != expected_before:
            raise ValidationError(
                f"Credit history gap at entry {index}: expected before={expected_before.cents}, "
                f"got {entry.balance_before.cents}"
            )
        if entry.type == CreditEntryType.CREDIT_USED:
            expected_after = entry.balance_before - entry.amount
        else:
            expected_after = entry.balance_before + entry.amount
        if entry.balance_after != expected_after or entry.balance_after.is_negative:
            raise ValidationError(f"Credit history entry {index} does not add up")
        expected_before = entry.balance_after

    if account.current_balance != expected_before:
        raise ValidationError(
            f"Credit balance {account.current_balance.cents} does not match history {expected_before.cents}"
        )
