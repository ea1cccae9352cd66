"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from hoa_payments.infrastructure.clients.accounting import AccountingClient
from hoa_payments.infrastructure.database.session import get_db
from hoa_payments.services.unified_payment import UnifiedPaymentService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_caller_id(request: Request) -> str:
    """Opaque caller identity set by the authenticating proxy"""
    caller = request.headers.get("X-Caller-Id", "").strip()
    return caller or "system"


def get_payment_service(db: Session = Depends(get_db)) -> UnifiedPaymentService:
    """Provide the unified payment service bound to the request session"""
    return UnifiedPaymentService(db)


def get_accounting_client() -> AccountingClient:
    """Provide accounting webhook client instance"""
    return AccountingClient()
