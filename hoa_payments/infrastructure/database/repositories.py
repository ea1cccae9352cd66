"""Data access layer for bills, credit accounts and payment transactions"""

import uuid
from datetime import date
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from hoa_payments.infrastructure.database.models import (
    CreditAccountRecord,
    CreditHistoryRecord,
    PaymentTransactionRecord,
    TransactionAllocationRecord,
    UnitBill,
)
from hoa_payments.domain.credit import CreditAccount
from hoa_payments.domain.models import (
    AllocationPlan,
    Bill,
    BillType,
    CreditEntryType,
    CreditHistoryEntry,
    PaymentTransaction,
    TransactionAllocation,
)
from hoa_payments.domain.money import Money
from hoa_payments.domain.priority import prioritize_bills


def _bill_to_domain(record: UnitBill) -> Bill:
    return Bill(
        bill_type=BillType(record.bill_type),
        bill_period=record.bill_period,
        due_date=record.due_date,
        base_charge_due=Money(record.base_charge_due_cents),
        penalty_due=Money(record.penalty_due_cents),
        amount_paid=Money(record.base_paid_cents + record.penalty_paid_cents),
    )


def _entry_to_domain(record: CreditHistoryRecord) -> CreditHistoryEntry:
    return CreditHistoryEntry(
        id=record.id,
        timestamp=record.timestamp,
        type=CreditEntryType(record.entry_type),
        amount=Money(record.amount_cents),
        balance_before=Money(record.balance_before_cents),
        balance_after=Money(record.balance_after_cents),
        transaction_id=record.transaction_id,
        notes=record.notes,
        source=record.source,
    )


def transaction_to_domain(record: PaymentTransactionRecord) -> PaymentTransaction:
    """Map a stored transaction and its split lines to the domain model"""
    return PaymentTransaction(
        transaction_id=str(record.id),
        unit_id=record.unit_id,
        amount=Money(record.amount_cents),
        payment_date=record.payment_date,
        payment_method=record.payment_method,
        payment_method_id=record.payment_method_id,
        account_id=record.account_id,
        account_type=record.account_type,
        reference=record.reference,
        notes=record.notes,
        recorded_by=record.recorded_by,
        idempotency_key=record.idempotency_key,
        created_at=record.created_at,
        allocations=[
            TransactionAllocation(
                id=line.allocation_id,
                type=line.allocation_type,
                target_id=line.target_id,
                target_name=line.target_name,
                category_id=line.category_id,
                category_name=line.category_name,
                amount=Money(line.amount_cents),
                bill_ref=line.bill_ref,
            )
            for line in record.allocations
        ],
    )


class BillRepository:
    """Repository for unit bills (the bill ledger)"""

    def __init__(self, db: Session):
        self.db = db

    def add_bill(
        self,
        unit_id: str,
        bill_type: BillType,
        bill_period: str,
        due_date: date,
        base_charge_cents: int,
        penalty_cents: int = 0,
    ) -> UnitBill:
        """Insert a generated bill (bill generation itself lives elsewhere)"""
        db_bill = UnitBill(
            unit_id=unit_id,
            bill_type=bill_type.value,
            bill_period=bill_period,
            due_date=due_date,
            base_charge_due_cents=base_charge_cents,
            penalty_due_cents=penalty_cents,
            status="paid" if base_charge_cents + penalty_cents == 0 else "unpaid",
        )
        self.db.add(db_bill)
        self.db.flush()
        return db_bill

    def get_bill_records(self, unit_id: str, lock: bool = False) -> List[UnitBill]:
        """Fetch all bill rows for a unit, optionally locked for update"""
        query = (
            self.db.query(UnitBill)
            .filter(UnitBill.unit_id == unit_id)
            .order_by(UnitBill.bill_type, UnitBill.bill_period)
        )
        if lock:
            query = query.with_for_update()
        return query.all()

    def load_outstanding(self, unit_id: str, as_of: date, lock: bool = False) -> List[Bill]:
        """
        Outstanding bills for a unit in allocation order.

        Paid bills and future water bills are left out; the rest carry their
        priority class relative to as_of.
        """
        records = self.get_bill_records(unit_id, lock=lock)
        return prioritize_bills((_bill_to_domain(r) for r in records), as_of)

    def apply_allocations(self, unit_id: str, plan: AllocationPlan, transaction_id: str) -> int:
        """
        Write the post-payment dues, paid totals, waived penalties and status
        of each bill.

        Returns:
            Number of bill rows changed
        """
        records = {f"{r.bill_type}:{r.bill_period}": r for r in self.get_bill_records(unit_id, lock=True)}
        changed = 0
        for allocation in plan.bill_allocations:
            if allocation.total_payment.is_zero and allocation.penalty_waived.is_zero:
                continue
            record = records[allocation.bill_ref]
            record.penalty_due_cents -= allocation.penalty_waived.cents + allocation.penalty_payment.cents
            record.penalty_waived_cents += allocation.penalty_waived.cents
            record.base_charge_due_cents -= allocation.base_charge_payment.cents
            record.penalty_paid_cents += allocation.penalty_payment.cents
            record.base_paid_cents += allocation.base_charge_payment.cents
            record.status = allocation.resulting_status.value
            record.last_transaction_id = transaction_id
            changed += 1
        self.db.flush()
        return changed


class CreditRepository:
    """Repository for unit credit accounts and their history"""

    def __init__(self, db: Session):
        self.db = db

    def get_record(self, unit_id: str, lock: bool = False) -> Optional[CreditAccountRecord]:
        query = self.db.query(CreditAccountRecord).filter(CreditAccountRecord.unit_id == unit_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get_or_create_record(self, unit_id: str) -> CreditAccountRecord:
        """Lock the unit's credit account row, creating it on first use"""
        record = self.get_record(unit_id, lock=True)
        if record is None:
            record = CreditAccountRecord(unit_id=unit_id, balance_cents=0)
            self.db.add(record)
            self.db.flush()
            record = self.get_record(unit_id, lock=True)
        return record

    def get_account(self, unit_id: str) -> CreditAccount:
        """Current credit account (empty account when the unit has none yet)"""
        record = self.get_record(unit_id)
        if record is None:
            return CreditAccount(unit_id=unit_id)
        return self.to_domain(record)

    def to_domain(self, record: CreditAccountRecord) -> CreditAccount:
        return CreditAccount(
            unit_id=record.unit_id,
            current_balance=Money(record.balance_cents),
            history=[_entry_to_domain(e) for e in record.entries],
        )

    def get_history(self, unit_id: str, limit: int) -> List[CreditHistoryEntry]:
        """Most recent entries first"""
        record = self.get_record(unit_id)
        if record is None:
            return []
        rows = (
            self.db.query(CreditHistoryRecord)
            .filter(CreditHistoryRecord.account_id == record.id)
            .order_by(CreditHistoryRecord.sequence.desc())
            .limit(limit)
            .all()
        )
        return [_entry_to_domain(r) for r in rows]

    def save_entries(
        self,
        record: CreditAccountRecord,
        account: CreditAccount,
        new_entries: Iterable[CreditHistoryEntry],
    ) -> None:
        """Persist appended entries and the resulting balance together"""
        sequence = len(record.entries)
        for entry in new_entries:
            sequence += 1
            record.entries.append(
                CreditHistoryRecord(
                    id=entry.id,
                    sequence=sequence,
                    timestamp=entry.timestamp,
                    entry_type=entry.type.value,
                    amount_cents=entry.amount.cents,
                    balance_before_cents=entry.balance_before.cents,
                    balance_after_cents=entry.balance_after.cents,
                    transaction_id=entry.transaction_id,
                    notes=entry.notes,
                    source=entry.source,
                )
            )
        record.balance_cents = account.current_balance.cents
        self.db.flush()

    def seed_starting_balance(self, unit_id: str, amount: Money, notes: str, source: str) -> CreditHistoryEntry:
        """Seed pre-existing credit on an account with no history"""
        record = self.get_or_create_record(unit_id)
        account = self.to_domain(record)
        entry = account.append_entry(CreditEntryType.STARTING_BALANCE, amount, notes=notes, source=source)
        self.save_entries(record, account, [entry])
        return entry


class TransactionRepository:
    """Repository for payment transactions"""

    def __init__(self, db: Session):
        self.db = db

    def create_transaction(
        self,
        transaction: PaymentTransaction,
        request_fingerprint: str,
        plan: AllocationPlan,
    ) -> PaymentTransactionRecord:
        """Persist transaction with its allocation lines"""
        db_txn = PaymentTransactionRecord(
            id=uuid.UUID(transaction.transaction_id),
            unit_id=transaction.unit_id,
            amount_cents=transaction.amount.cents,
            payment_date=transaction.payment_date,
            payment_method=transaction.payment_method,
            payment_method_id=transaction.payment_method_id,
            account_id=transaction.account_id,
            account_type=transaction.account_type,
            reference=transaction.reference,
            notes=transaction.notes,
            recorded_by=transaction.recorded_by,
            idempotency_key=transaction.idempotency_key,
            request_fingerprint=request_fingerprint,
            credit_used_cents=plan.credit_used.cents,
            credit_added_cents=plan.credit_added.cents,
        )
        for position, line in enumerate(transaction.allocations):
            db_txn.allocations.append(
                TransactionAllocationRecord(
                    position=position,
                    allocation_id=line.id,
                    allocation_type=line.type,
                    target_id=line.target_id,
                    target_name=line.target_name,
                    category_id=line.category_id,
                    category_name=line.category_name,
                    amount_cents=line.amount.cents,
                    bill_ref=line.bill_ref,
                )
            )
        self.db.add(db_txn)
        self.db.flush()
        return db_txn

    def get_by_idempotency_key(self, idempotency_key: str) -> Optional[PaymentTransactionRecord]:
        return (
            self.db.query(PaymentTransactionRecord)
            .filter(PaymentTransactionRecord.idempotency_key == idempotency_key)
            .first()
        )

    def get_by_id(self, transaction_id: uuid.UUID) -> Optional[PaymentTransactionRecord]:
        return (
            self.db.query(PaymentTransactionRecord)
            .filter(PaymentTransactionRecord.id == transaction_id)
            .first()
        )
