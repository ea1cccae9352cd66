"""SQLAlchemy ORM models for bills, credit accounts and payment transactions"""

import uuid
from sqlalchemy import Column, String, BigInteger, DateTime, Date, Integer, ForeignKey, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class UnitBill(Base):
    """HOA dues month or water bill period for a unit (remaining amounts)"""

    __tablename__ = "unit_bill"
    __table_args__ = (UniqueConstraint("unit_id", "bill_type", "bill_period", name="uq_unit_bill_period"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    unit_id = Column(Text, nullable=False, index=True)
    bill_type = Column(String(16), nullable=False)  # hoa | water
    bill_period = Column(String(16), nullable=False)
    due_date = Column(Date, nullable=False)
    base_charge_due_cents = Column(BigInteger, nullable=False, default=0)
    penalty_due_cents = Column(BigInteger, nullable=False, default=0)
    base_paid_cents = Column(BigInteger, nullable=False, default=0)
    penalty_paid_cents = Column(BigInteger, nullable=False, default=0)
    penalty_waived_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="unpaid")
    last_transaction_id = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class CreditAccountRecord(Base):
    """Unit credit balance; row is locked for the duration of a payment"""

    __tablename__ = "credit_account"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    unit_id = Column(Text, nullable=False, unique=True)
    balance_cents = Column(BigInteger, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # UPDATE ... WHERE version = <loaded>; a lost race raises StaleDataError
    __mapper_args__ = {"version_id_col": version}

    entries = relationship(
        "CreditHistoryRecord",
        back_populates="account",
        cascade="all, delete-orphan",
        order_by="CreditHistoryRecord.sequence",
    )


class CreditHistoryRecord(Base):
    """Append-only credit ledger entry"""

    __tablename__ = "credit_history_entry"
    __table_args__ = (UniqueConstraint("account_id", "sequence", name="uq_credit_history_sequence"),)

    id = Column(Text, primary_key=True)
    account_id = Column(UUID(as_uuid=True), ForeignKey("credit_account.id", ondelete="CASCADE"), nullable=False)
    sequence = Column(Integer, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    entry_type = Column(String(32), nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    balance_before_cents = Column(BigInteger, nullable=False)
    balance_after_cents = Column(BigInteger, nullable=False)
    transaction_id = Column(Text, nullable=True)
    notes = Column(Text, nullable=False, default="")
    source = Column(Text, nullable=False, default="unified_payment")

    account = relationship("CreditAccountRecord", back_populates="entries")


class PaymentTransactionRecord(Base):
    """Financial transaction created when a unified payment is recorded"""

    __tablename__ = "payment_transaction"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    unit_id = Column(Text, nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    payment_date = Column(Date, nullable=False)
    payment_method = Column(Text, nullable=False)
    payment_method_id = Column(Text, nullable=True)
    account_id = Column(Text, nullable=False)
    account_type = Column(Text, nullable=False)
    reference = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    recorded_by = Column(Text, nullable=False, default="system")
    idempotency_key = Column(Text, nullable=False, unique=True)
    request_fingerprint = Column(String(64), nullable=False)
    credit_used_cents = Column(BigInteger, nullable=False, default=0)
    credit_added_cents = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    allocations = relationship(
        "TransactionAllocationRecord",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionAllocationRecord.position",
    )


class TransactionAllocationRecord(Base):
    """Split line of a payment transaction"""

    __tablename__ = "transaction_allocation"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    transaction_id = Column(UUID(as_uuid=True), ForeignKey("payment_transaction.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    allocation_id = Column(String(16), nullable=False)
    allocation_type = Column(String(32), nullable=False)
    target_id = Column(Text, nullable=False)
    target_name = Column(Text, nullable=False)
    category_id = Column(Text, nullable=False)
    category_name = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    bill_ref = Column(Text, nullable=True)

    transaction = relationship("PaymentTransactionRecord", back_populates="allocations")
