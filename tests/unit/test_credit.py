"""Unit tests for the credit account ledger"""

import pytest
from hypothesis import given, strategies as st
from hoa_payments.domain.credit import CreditAccount, verify_history_chain
from hoa_payments.domain.exceptions import InsufficientCreditError, ValidationError
from hoa_payments.domain.models import CreditEntryType
from hoa_payments.domain.money import Money


def test_entries_chain_balances():
    """Test each entry starts where the previous one ended"""
    account = CreditAccount(unit_id="A-101")

    account.append_entry(CreditEntryType.STARTING_BALANCE, Money(1000))
    account.append_entry(CreditEntryType.CREDIT_ADDED, Money(500), transaction_id="t1")
    used = account.append_entry(CreditEntryType.CREDIT_USED, Money(1200), transaction_id="t2")

    assert account.current_balance == Money(300)
    assert used.balance_before == Money(1500)
    assert used.balance_after == Money(300)
    assert [e.type for e in account.history] == [
        CreditEntryType.STARTING_BALANCE,
        CreditEntryType.CREDIT_ADDED,
        CreditEntryType.CREDIT_USED,
    ]
    verify_history_chain(account)


def test_using_more_than_balance_fails():
    """Test credit_used above the balance raises and leaves the account unchanged"""
    account = CreditAccount(unit_id="A-101")
    account.append_entry(CreditEntryType.CREDIT_ADDED, Money(100))

    with pytest.raises(InsufficientCreditError):
        account.append_entry(CreditEntryType.CREDIT_USED, Money(101))

    assert account.current_balance == Money(100)
    assert len(account.history) == 1


def test_starting_balance_only_on_empty_history():
    """Test a starting balance cannot be added after other entries"""
    account = CreditAccount(unit_id="A-101")
    account.append_entry(CreditEntryType.CREDIT_ADDED, Money(100))

    with pytest.raises(ValidationError):
        account.append_entry(CreditEntryType.STARTING_BALANCE, Money(50))


def test_entry_amount_must_be_positive():
    """Test zero-amount entries are rejected"""
    account = CreditAccount(unit_id="A-101")

    with pytest.raises(ValidationError):
        account.append_entry(CreditEntryType.CREDIT_ADDED, Money(0))


def test_verify_detects_broken_chain():
    """Test a tampered balance is reported"""
    account = CreditAccount(unit_id="A-101")
    account.append_entry(CreditEntryType.CREDIT_ADDED, Money(100))
    account.current_balance = Money(90)

    with pytest.raises(ValidationError):
        verify_history_chain(account)


credit_movements = st.lists(
    st.tuples(
        st.sampled_from([CreditEntryType.CREDIT_ADDED, CreditEntryType.CREDIT_USED]),
        st.integers(min_value=1, max_value=10_000),
    ),
    max_size=40,
)


@given(movements=credit_movements)
def test_chain_holds_for_any_sequence(movements):
    """Test any mix of additions and usages keeps a verifiable, non-negative chain"""
    account = CreditAccount(unit_id="A-101")
    expected = 0

    for entry_type, cents in movements:
        if entry_type == CreditEntryType.CREDIT_USED and cents > expected:
            with pytest.raises(InsufficientCreditError):
                account.append_entry(entry_type, Money(cents))
            continue
        account.append_entry(entry_type, Money(cents))
        expected += cents if entry_type == CreditEntryType.CREDIT_ADDED else -cents

    verify_history_chain(account)
    assert account.current_balance == Money(expected)
    assert all(not e.balance_after.is_negative for e in account.history)
