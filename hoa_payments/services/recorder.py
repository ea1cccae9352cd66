"""Payment recorder - validates a previewed plan and persists it atomically"""

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from hoa_payments.config import settings
from hoa_payments.domain.allocations import build_transaction_allocations, transaction_notes
from hoa_payments.domain.allocator import allocate_payment
from hoa_payments.domain.credit import CreditAccount
from hoa_payments.domain.exceptions import (
    DomainException,
    DuplicateSubmissionError,
    PersistenceError,
    StaleAllocationError,
    ValidationError,
)
from hoa_payments.domain.models import (
    AllocationPlan,
    Bill,
    CreditEntryType,
    CreditHistoryEntry,
    PaymentTransaction,
    PenaltyWaiver,
)
from hoa_payments.domain.money import Money
from hoa_payments.infrastructure.database.models import PaymentTransactionRecord
from hoa_payments.infrastructure.database.repositories import (
    BillRepository,
    CreditRepository,
    TransactionRepository,
    transaction_to_domain,
)

logger = logging.getLogger(__name__)


@dataclass
class PaymentRequest:
    """Everything the caller supplies to record a payment, minus the plan"""

    unit_id: str
    payment_amount: Money
    payment_date: date
    payment_method: str
    account_id: str
    account_type: str
    idempotency_key: str
    payment_method_id: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    recorded_by: str = "system"
    excluded_bills: List[str] = field(default_factory=list)
    waivers: List[PenaltyWaiver] = field(default_factory=list)

    def fingerprint(self) -> str:
        """Stable hash of the fields that define the payment"""
        canonical = json.dumps(
            {
                "unit_id": self.unit_id,
                "amount_cents": self.payment_amount.cents,
                "payment_date": self.payment_date.isoformat(),
                "payment_method": self.payment_method,
                "payment_method_id": self.payment_method_id,
                "account_id": self.account_id,
                "account_type": self.account_type,
                "reference": self.reference,
                "excluded_bills": sorted(self.excluded_bills),
                "waived_penalties": sorted(
                    [w.bill_ref, Money.of(w.amount).cents, w.reason, w.notes or ""] for w in self.waivers
                ),
            },
            sort_keys=True,
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class RecordResult:
    """Outcome of a record call"""

    transaction: PaymentTransaction
    credit_account: CreditAccount
    credit_entries: List[CreditHistoryEntry]
    plan: Optional[AllocationPlan]  # None when an earlier submission is replayed
    replayed: bool = False


def _validate_request(request: PaymentRequest) -> None:
    request.payment_amount = Money.of(request.payment_amount)
    if request.payment_amount.cents <= 0:
        raise ValidationError(f"Payment amount must be positive, got {request.payment_amount.cents}")
    for field_name in ("unit_id", "payment_method", "account_id", "account_type", "idempotency_key"):
        value = getattr(request, field_name)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{field_name} is required")


def _check_adjustments_still_apply(request: PaymentRequest, bills: List[Bill]) -> None:
    outstanding = {b.bill_ref for b in bills}
    adjusted = set(request.excluded_bills) | {w.bill_ref for w in request.waivers}
    gone = sorted(adjusted - outstanding)
    if gone:
        raise StaleAllocationError(f"Bills no longer outstanding: {', '.join(gone)}")


def _describe_mismatch(expected: AllocationPlan, supplied: AllocationPlan) -> str:
    if expected.current_credit_balance != supplied.current_credit_balance:
        return "credit balance changed"
    expected_refs = [a.bill_ref for a in expected.bill_allocations]
    supplied_refs = [a.bill_ref for a in supplied.bill_allocations]
    if expected_refs != supplied_refs:
        return "outstanding bills changed"
    for fresh, old in zip(expected.bill_allocations, supplied.bill_allocations):
        if fresh != old:
            return f"bill {fresh.bill_ref} changed"
    return "allocation totals differ"


class PaymentRecorder:
    """
    Records a unified payment against a unit.

    Bill updates, credit ledger entries and the transaction are written in
    one database transaction while the unit's credit account row is locked.
    A concurrent record for the same unit waits for the lock, then sees the
    committed state and fails the staleness check.
    """

    def __init__(self, db: Session):
        self.db = db
        self.bills = BillRepository(db)
        self.credits = CreditRepository(db)
        self.transactions = TransactionRepository(db)

    def record(
        self,
        request: PaymentRequest,
        plan: AllocationPlan,
        previewed_at: Optional[datetime] = None,
    ) -> RecordResult:
        """
        Validate and persist a previewed allocation.

        Raises:
            ValidationError: malformed request or plan
            DuplicateSubmissionError: idempotency key reused for a different payment
            StaleAllocationError: bills or credit changed since the preview
            InsufficientCreditError: credit usage exceeds balance (bug)
            PersistenceError: database write failed; nothing was written
        """
        _validate_request(request)
        fingerprint = request.fingerprint()

        try:
            replay = self._find_replay(request, fingerprint)
            if replay is not None:
                return replay

            self._check_plan_shape(request, plan, previewed_at)

            # Unit lock: every record for this unit serialises on this row
            credit_record = self.credits.get_or_create_record(request.unit_id)

            replay = self._find_replay(request, fingerprint)
            if replay is not None:
                self.db.rollback()
                return replay

            bills = self.bills.load_outstanding(request.unit_id, request.payment_date, lock=True)
            _check_adjustments_still_apply(request, bills)
            account = self.credits.to_domain(credit_record)
            fresh = allocate_payment(
                request.payment_amount,
                account.current_balance,
                bills,
                excluded_bills=request.excluded_bills,
                waivers=request.waivers,
            )
            if fresh != plan:
                reason = _describe_mismatch(fresh, plan)
                raise StaleAllocationError(f"Allocation changed since preview: {reason}")

            transaction_id = str(uuid.uuid4())
            self.bills.apply_allocations(request.unit_id, fresh, transaction_id)

            entries = []
            if not fresh.credit_used.is_zero:
                entries.append(
                    account.append_entry(
                        CreditEntryType.CREDIT_USED,
                        fresh.credit_used,
                        transaction_id=transaction_id,
                        notes=f"Credit applied to bills on {request.payment_date.isoformat()}",
                    )
                )
            if not fresh.credit_added.is_zero:
                entries.append(
                    account.append_entry(
                        CreditEntryType.CREDIT_ADDED,
                        fresh.credit_added,
                        transaction_id=transaction_id,
                        notes=f"Overpayment on {request.payment_date.isoformat()}",
                    )
                )
            if entries:
                self.credits.save_entries(credit_record, account, entries)

            transaction = PaymentTransaction(
                transaction_id=transaction_id,
                unit_id=request.unit_id,
                amount=request.payment_amount,
                payment_date=request.payment_date,
                payment_method=request.payment_method,
                payment_method_id=request.payment_method_id,
                account_id=request.account_id,
                account_type=request.account_type,
                reference=request.reference,
                notes=transaction_notes(request.notes, fresh, request.waivers),
                recorded_by=request.recorded_by,
                idempotency_key=request.idempotency_key,
                allocations=build_transaction_allocations(request.unit_id, fresh),
            )
            db_txn = self.transactions.create_transaction(transaction, fingerprint, fresh)
            self.db.commit()

        except DomainException:
            self.db.rollback()
            raise
        except StaleDataError as e:
            # credit_account version moved under us
            self.db.rollback()
            raise StaleAllocationError("Credit account changed while recording; preview again") from e
        except IntegrityError as e:
            # Same idempotency key committed by a concurrent request
            self.db.rollback()
            replay = self._find_replay(request, fingerprint)
            if replay is not None:
                return replay
            raise PersistenceError(f"Conflicting write while recording payment: {e.orig}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Database error while recording payment: {e}") from e

        logger.info(
            "Unified payment persisted",
            extra={
                "unit_id": request.unit_id,
                "transaction_id": transaction_id,
                "credit_used_cents": fresh.credit_used.cents,
                "credit_added_cents": fresh.credit_added.cents,
            },
        )
        transaction.created_at = db_txn.created_at
        return RecordResult(
            transaction=transaction,
            credit_account=account,
            credit_entries=entries,
            plan=fresh,
        )

    def _find_replay(self, request: PaymentRequest, fingerprint: str) -> Optional[RecordResult]:
        existing = self.transactions.get_by_idempotency_key(request.idempotency_key)
        if existing is None:
            return None
        if existing.request_fingerprint != fingerprint:
            raise DuplicateSubmissionError(
                f"Idempotency key {request.idempotency_key} was used for a different payment",
                transaction_id=str(existing.id),
            )

        logger.info(
            "Duplicate submission replayed",
            extra={"unit_id": request.unit_id, "transaction_id": str(existing.id)},
        )
        return self._replay_result(existing)

    def _replay_result(self, existing: PaymentTransactionRecord) -> RecordResult:
        transaction_id = str(existing.id)
        account = self.credits.get_account(existing.unit_id)
        entries = [e for e in account.history if e.transaction_id == transaction_id]
        return RecordResult(
            transaction=transaction_to_domain(existing),
            credit_account=account,
            credit_entries=entries,
            plan=None,
            replayed=True,
        )

    def _check_plan_shape(
        self,
        request: PaymentRequest,
        plan: AllocationPlan,
        previewed_at: Optional[datetime],
    ) -> None:
        if plan.payment_amount != request.payment_amount:
            raise ValidationError("Preview amount does not match payment amount")
        if not plan.is_balanced():
            raise ValidationError("Preview allocations do not balance with the payment amount")
        if plan.total_available_funds != plan.payment_amount + plan.current_credit_balance:
            raise ValidationError("Preview available funds do not match payment plus credit")
        if plan.new_credit_balance != plan.current_credit_balance - plan.credit_used + plan.credit_added:
            raise ValidationError("Preview credit balance does not add up")

        if previewed_at is not None:
            if previewed_at.tzinfo is None:
                previewed_at = previewed_at.replace(tzinfo=timezone.utc)
            age = (datetime.now(timezone.utc) - previewed_at).total_seconds()
            if age < -settings.preview_clock_skew_seconds:
                raise ValidationError("Preview timestamp is in the future")
            if age > settings.preview_ttl_seconds:
                raise StaleAllocationError(
                    f"Preview is {int(age)}s old (limit {settings.preview_ttl_seconds}s); preview again"
                )
