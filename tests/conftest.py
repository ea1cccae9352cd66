"""Pytest fixtures for testing"""

import pytest
from datetime import date
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session
from hoa_payments.api.main import create_app
from hoa_payments.domain.models import BillType
from hoa_payments.infrastructure.database.models import Base, UnitBill
from hoa_payments.infrastructure.database.repositories import BillRepository
from hoa_payments.infrastructure.database.session import build_engine, get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def month_start(reference: date, months: int) -> date:
    """First day of the month `months` away from reference"""
    index = reference.year * 12 + (reference.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def add_bill(db: Session) -> Callable[..., UnitBill]:
    """
    Factory inserting a committed bill for a unit.

    The bill is due on the 10th of the month `months` away from `reference`
    (negative = past).
    """

    def _add_bill(
        unit_id: str,
        bill_type: BillType,
        months: int,
        base_cents: int,
        penalty_cents: int = 0,
        reference: date | None = None,
    ) -> UnitBill:
        start = month_start(reference or date.today(), months)
        record = BillRepository(db).add_bill(
            unit_id=unit_id,
            bill_type=bill_type,
            bill_period=start.strftime("%Y-%m"),
            due_date=start.replace(day=10),
            base_charge_cents=base_cents,
            penalty_cents=penalty_cents,
        )
        db.commit()
        return record

    return _add_bill
