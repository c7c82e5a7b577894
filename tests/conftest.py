"""Pytest fixtures for testing"""

import pytest
from decimal import Decimal
from typing import Dict, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from pledge_ledger.api.main import create_app
from pledge_ledger.api.dependencies import get_rate_table
from pledge_ledger.infrastructure.database.models import Base
from pledge_ledger.infrastructure.database.session import get_db
from pledge_ledger.domain.models import Pledge
from pledge_ledger.domain.money import Money


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Units of each currency per USD
RATES = {"USD": "1", "ILS": "3.65", "EUR": "0.92", "GBP": "0.79", "JPY": "150.25"}


@pytest.fixture
def rates() -> Dict[str, str]:
    return dict(RATES)


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
    """Create FastAPI test client with test database and a fixed rate table"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_table] = lambda: dict(RATES)
    return TestClient(app)


@pytest.fixture
def pledges() -> Dict[int, Pledge]:
    """Three pledges in different currencies, nothing paid yet"""
    return {
        1: Pledge(id=1, original_amount=Money.of("1000.00"), currency="USD", exchange_rate=Decimal("1")),
        2: Pledge(id=2, original_amount=Money.of("3650.00"), currency="ILS", exchange_rate=Decimal("3.65")),
        3: Pledge(id=3, original_amount=Money.of("500.00"), currency="USD", exchange_rate=Decimal("1")),
    }
