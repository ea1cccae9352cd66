"""Accounting webhook client with exponential backoff retry logic"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from hoa_payments.config import settings
from hoa_payments.domain.models import AllocationPlan, PaymentTransaction
from hoa_payments.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter

logger = logging.getLogger(__name__)


def build_payment_event(transaction: PaymentTransaction, plan: AllocationPlan) -> Dict[str, Any]:
    """PAYMENT_RECORDED event body for downstream consumers (receipts, statements)"""
    return {
        "event": "PAYMENT_RECORDED",
        "transaction_id": transaction.transaction_id,
        "unit_id": transaction.unit_id,
        "payment_date": transaction.payment_date.isoformat(),
        "amount_cents": transaction.amount.cents,
        "credit_used_cents": plan.credit_used.cents,
        "credit_added_cents": plan.credit_added.cents,
        "new_credit_balance_cents": plan.new_credit_balance.cents,
        "bills": [
            {
                "bill_ref": a.bill_ref,
                "total_paid_cents": a.total_payment.cents,
                "status": a.resulting_status.value,
            }
            for a in plan.bill_allocations
            if not a.total_payment.is_zero
        ],
    }


class AccountingClient:
    """Client for sending payment events to the accounting service"""

    def __init__(
        self,
        webhook_url: str | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url or settings.accounting_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.timeout = settings.http_timeout_seconds
        self.transport = transport

    async def send_payment_event(self, payload: Dict[str, Any]) -> None:
        """
        Deliver a payment event with retry logic.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^(attempt-1))
        - Retries on HTTP errors and network failures
        - Tracks latency histogram and failure counter

        Raises:
            httpx.HTTPError: after the final failed attempt
        """
        attempt = 0
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    webhook_failure_counter.inc()

                    if attempt >= self.max_retries:
                        logger.error(
                            f"Accounting webhook failed after {attempt} attempts: {e}",
                            extra={"transaction_id": payload.get("transaction_id")},
                        )
                        raise

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)

    async def notify_payment_recorded(self, payload: Dict[str, Any]) -> bool:
        """
        Background delivery entry point.

        The payment is already committed when this runs, so a delivery
        failure is logged and reported instead of raised.
        """
        try:
            await self.send_payment_event(payload)
        except httpx.HTTPError:
            logger.exception(
                "Payment event not delivered",
                extra={"transaction_id": payload.get("transaction_id")},
            )
            return False
        return True
