"""Prometheus metrics for payment outcomes, credit movement and webhook performance"""

from prometheus_client import Counter, Histogram

from hoa_payments.domain.models import AllocationPlan

# Payment metrics
payment_counter = Counter(
    "hoa_payments_recorded_total",
    "Unified payment record attempts",
    ["outcome"],  # recorded | replayed | stale | duplicate | invalid | failed
)

preview_counter = Counter(
    "hoa_payment_previews_total",
    "Unified payment previews generated",
)

allocated_amount_counter = Counter(
    "hoa_payments_allocated_cents_total",
    "Minor units applied to bills",
    ["bill_type", "component"],  # hoa|water, base|penalty
)

credit_movement_counter = Counter(
    "hoa_credit_movement_cents_total",
    "Minor units moved in or out of unit credit",
    ["direction"],  # added | used
)

record_latency_histogram = Histogram(
    "hoa_payment_record_seconds",
    "Time spent validating and persisting a payment",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "webhook_latency_seconds",
    "Accounting webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "webhook_failures_total",
    "Failed webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_payment(plan: AllocationPlan) -> None:
    """Record allocation and credit metrics for a committed payment"""
    payment_counter.labels(outcome="recorded").inc()

    for allocation in plan.bill_allocations:
        bill_type = allocation.bill_type.value
        if allocation.base_charge_payment.cents:
            allocated_amount_counter.labels(bill_type=bill_type, component="base").inc(
                allocation.base_charge_payment.cents
            )
        if allocation.penalty_payment.cents:
            allocated_amount_counter.labels(bill_type=bill_type, component="penalty").inc(
                allocation.penalty_payment.cents
            )

    if plan.credit_added.cents:
        credit_movement_counter.labels(direction="added").inc(plan.credit_added.cents)
    if plan.credit_used.cents:
        credit_movement_counter.labels(direction="used").inc(plan.credit_used.cents)


def record_outcome(outcome: str) -> None:
    payment_counter.labels(outcome=outcome).inc()
