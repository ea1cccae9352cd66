"""Unified payment service - preview and record cross-module payments"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hoa_payments.domain.allocator import allocate_payment
from hoa_payments.domain.exceptions import PersistenceError
from hoa_payments.domain.models import AllocationPlan, Bill, CreditHistoryEntry, PenaltyWaiver
from hoa_payments.domain.money import Money, money_sum
from hoa_payments.infrastructure.database.repositories import BillRepository, CreditRepository
from hoa_payments.services.recorder import PaymentRecorder, PaymentRequest, RecordResult

logger = logging.getLogger(__name__)


@dataclass
class Preview:
    """Advisory allocation; record() re-validates it against fresh state"""

    unit_id: str
    payment_date: date
    plan: AllocationPlan
    generated_at: datetime


class UnifiedPaymentService:
    """Entry point for HOA dues and water bill payments of one unit"""

    def __init__(self, db: Session):
        self.db = db
        self.bills = BillRepository(db)
        self.credits = CreditRepository(db)
        self.recorder = PaymentRecorder(db)

    def preview(
        self,
        unit_id: str,
        amount: Money,
        payment_date: date,
        excluded_bills: Iterable[str] = (),
        waivers: Sequence[PenaltyWaiver] = (),
    ) -> Preview:
        """
        Show how a payment would be split, without writing anything.

        Flow:
        1. Load outstanding bills in priority order as of the payment date
        2. Load the unit's current credit balance
        3. Run the allocator, skipping excluded bills and applying penalty waivers

        The same exclusions and waivers must be sent with the record call.
        """
        try:
            bills = self.bills.load_outstanding(unit_id, payment_date)
            account = self.credits.get_account(unit_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Database error while loading unit {unit_id}: {e}") from e

        plan = allocate_payment(
            Money.of(amount),
            account.current_balance,
            bills,
            excluded_bills=excluded_bills,
            waivers=waivers,
        )

        logger.info(
            "Payment preview generated",
            extra={
                "unit_id": unit_id,
                "amount_cents": plan.payment_amount.cents,
                "bills_considered": len(plan.bill_allocations),
                "waived_cents": plan.total_waived.cents,
                "credit_used_cents": plan.credit_used.cents,
                "credit_added_cents": plan.credit_added.cents,
            },
        )
        return Preview(
            unit_id=unit_id,
            payment_date=payment_date,
            plan=plan,
            generated_at=datetime.now(timezone.utc),
        )

    def record(
        self,
        request: PaymentRequest,
        plan: AllocationPlan,
        previewed_at: Optional[datetime] = None,
    ) -> RecordResult:
        """Persist a previewed payment (see PaymentRecorder.record)"""
        return self.recorder.record(request, plan, previewed_at)

    def outstanding_bills(self, unit_id: str, as_of: date) -> Tuple[List[Bill], Money]:
        """Payable bills in allocation order and their total"""
        bills = self.bills.load_outstanding(unit_id, as_of)
        return bills, money_sum(b.remaining for b in bills)

    def credit_history(self, unit_id: str, limit: int) -> Tuple[Money, List[CreditHistoryEntry]]:
        """Current balance and the most recent history entries"""
        account = self.credits.get_account(unit_id)
        return account.current_balance, self.credits.get_history(unit_id, limit)
