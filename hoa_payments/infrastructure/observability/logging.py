"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from hoa_payments.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore")


def setup_logging(level: str = "INFO") -> None:
    """
    Send every log record to stdout as one JSON object.

    Library loggers that log per query or per request are held at WARNING
    unless the service itself runs at DEBUG.
    """
    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    root.addHandler(handler)

    if logging.getLevelName(level) != logging.DEBUG:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def log_payment_recorded(
    request_id: str,
    unit_id: str,
    transaction_id: str,
    amount_cents: int,
    credit_used_cents: int,
    credit_added_cents: int,
    bills_paid: int,
    replayed: bool,
    duration_ms: float,
) -> None:
    """Log structured payment outcome for reconciliation"""
    logging.info(
        "Payment recorded",
        extra={
            "request_id": request_id,
            "unit_id": unit_id,
            "transaction_id": transaction_id,
            "step": "record_complete",
            "amount_cents": amount_cents,
            "credit_used_cents": credit_used_cents,
            "credit_added_cents": credit_added_cents,
            "bills_paid": bills_paid,
            "replayed": replayed,
            "duration_ms": duration_ms,
        },
    )
