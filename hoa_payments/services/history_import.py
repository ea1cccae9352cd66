"""Rebuild a unit's bills and credit from historical payments

Imports replay every historical payment through the same allocator and
recorder used for live payments, so imported and live balances can never
disagree. Progress is reported on an ImportProgress handle owned by the
caller.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hoa_payments.domain.exceptions import DomainException
from hoa_payments.domain.money import Money
from hoa_payments.infrastructure.database.repositories import CreditRepository
from hoa_payments.services.recorder import PaymentRequest
from hoa_payments.services.unified_payment import UnifiedPaymentService

logger = logging.getLogger(__name__)


@dataclass
class HistoricalPayment:
    """One payment row from a client's legacy records"""

    payment_date: date
    amount_cents: int
    payment_method: str = "import"
    account_id: str = "bank-001"
    account_type: str = "bank"
    reference: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class ImportProgress:
    """Pollable status of one unit import"""

    unit_id: str
    total: int
    processed: int = 0
    status: str = "pending"  # pending | running | completed | failed
    transaction_ids: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def percent_complete(self) -> int:
        if self.total == 0:
            return 100
        return (self.processed * 100) // self.total

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "unit_id": self.unit_id,
                "total": self.total,
                "processed": self.processed,
                "percent_complete": self.percent_complete,
                "status": self.status,
                "errors": list(self.errors),
            }

    def _advance(self, transaction_id: str) -> None:
        with self._lock:
            self.processed += 1
            self.transaction_ids.append(transaction_id)

    def _finish(self, status: str, error: Optional[str] = None) -> None:
        with self._lock:
            self.status = status
            if error:
                self.errors.append(error)


class HistoryImporter:
    """Replays a unit's payment history in date order"""

    def __init__(self, db: Session):
        self.db = db
        self.credits = CreditRepository(db)
        self.payments = UnifiedPaymentService(db)

    def start(self, unit_id: str, history: List[HistoricalPayment]) -> ImportProgress:
        """Create the progress handle the caller polls while run() works"""
        return ImportProgress(unit_id=unit_id, total=len(history))

    def run(
        self,
        progress: ImportProgress,
        history: List[HistoricalPayment],
        starting_credit: Money = Money.zero(),
        batch_id: str = "import",
    ) -> ImportProgress:
        """
        Seed starting credit, then record each payment oldest first.

        Idempotency keys are derived from batch_id and the row position, so
        re-running the same batch replays instead of double-applying. The
        import stops at the first rejected payment: later allocations depend
        on earlier ones.
        """
        unit_id = progress.unit_id
        progress._finish("running")

        try:
            if not starting_credit.is_zero:
                account = self.credits.get_account(unit_id)
                if account.history:
                    logger.info("Starting credit already seeded", extra={"unit_id": unit_id})
                else:
                    self.credits.seed_starting_balance(
                        unit_id, starting_credit, notes="Imported starting balance", source=batch_id
                    )
                    self.db.commit()

            ordered = sorted(enumerate(history), key=lambda item: (item[1].payment_date, item[0]))
            for position, payment in ordered:
                preview = self.payments.preview(unit_id, Money.of(payment.amount_cents), payment.payment_date)
                request = PaymentRequest(
                    unit_id=unit_id,
                    payment_amount=Money.of(payment.amount_cents),
                    payment_date=payment.payment_date,
                    payment_method=payment.payment_method,
                    account_id=payment.account_id,
                    account_type=payment.account_type,
                    idempotency_key=f"{batch_id}:{unit_id}:{position}",
                    reference=payment.reference,
                    notes=payment.notes,
                    recorded_by=batch_id,
                )
                result = self.payments.record(request, preview.plan)
                progress._advance(result.transaction.transaction_id)

        except DomainException as e:
            self.db.rollback()
            logger.error(f"Import stopped: {e}", extra={"unit_id": unit_id, "processed": progress.processed})
            progress._finish("failed", str(e))
            return progress
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Import aborted by database error: {e}",
                extra={"unit_id": unit_id, "processed": progress.processed},
            )
            progress._finish("failed", f"Database error: {e}")
            return progress

        progress._finish("completed")
        logger.info("Import completed", extra={"unit_id": unit_id, "processed": progress.processed})
        return progress
