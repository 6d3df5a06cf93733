"""
Pytest Configuration and Shared Fixtures
========================================

This module provides shared fixtures for all DoseLedger tests.
Fixtures include database sessions, test clients, sample data, and
engine snapshots.
"""

import os
import sys
from datetime import datetime
from typing import Generator, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base
from api.deps import get_db
from models import Medication, MedicationLog, MedicationType, LogStatus
from services.adherence_service import (
    MedicationRecord,
    ReportWindow,
)
from app import app
from tests import TEST_USER_ID, utc


# ==================== DATABASE FIXTURES ====================

@pytest.fixture(scope="function")
def test_engine():
    """Create a test database engine with in-memory SQLite"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    # Enable foreign keys for SQLite
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # Create all tables
    Base.metadata.create_all(bind=engine)

    yield engine

    # Cleanup
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a test database session"""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_engine
    )

    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a FastAPI test client with database override"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict:
    """Headers the access-control layer would forward"""
    return {"X-User-Id": TEST_USER_ID}


# ==================== SAMPLE DATA FIXTURES ====================

@pytest.fixture
def week_window() -> ReportWindow:
    """2024-01-01 .. 2024-01-07, whole days"""
    return ReportWindow(
        start=utc(2024, 1, 1),
        end=utc(2024, 1, 7, 23, 59, 59, 999999)
    )


@pytest.fixture
def prescription_record() -> MedicationRecord:
    """Always-active prescription with two daily slots"""
    return MedicationRecord(
        id="med-metformin",
        name="Metformin",
        dosage="500mg",
        frequency="twice daily",
        classification=MedicationType.PRESCRIPTION,
        schedule_slots=["Morning", "Evening"],
    )


@pytest.fixture
def one_time_record() -> MedicationRecord:
    return MedicationRecord(
        id="med-flu-shot",
        name="Flu vaccine",
        dosage="0.5ml",
        frequency="once",
        classification=MedicationType.ONE_TIME,
        schedule_slots=["Morning"],
    )


@pytest.fixture
def as_needed_record() -> MedicationRecord:
    return MedicationRecord(
        id="med-ibuprofen",
        name="Ibuprofen",
        dosage="200mg",
        frequency="as needed",
        classification=MedicationType.AS_NEEDED,
        schedule_slots=[],
    )


@pytest.fixture
def stored_prescription(db_session: Session) -> Medication:
    """Prescription row owned by the test user"""
    medication = Medication(
        user_id=TEST_USER_ID,
        name="Lisinopril",
        dosage="10mg",
        frequency="once daily",
        time_of_day=["Morning"],
        medication_type=MedicationType.PRESCRIPTION,
        start_date=datetime(2024, 1, 1),
        end_date=None,
        is_active=True
    )
    db_session.add(medication)
    db_session.commit()
    db_session.refresh(medication)
    return medication


@pytest.fixture
def stored_logs(db_session: Session, stored_prescription: Medication) -> List[MedicationLog]:
    """Five taken and one missed dose of the stored prescription in the first week of 2024"""
    logs = []
    for day in range(1, 7):
        log = MedicationLog(
            user_id=TEST_USER_ID,
            medication_id=stored_prescription.id,
            scheduled_time="Morning",
            taken_at=datetime(2024, 1, day, 8, 15),
            status=LogStatus.MISSED if day == 6 else LogStatus.TAKEN
        )
        db_session.add(log)
        logs.append(log)
    db_session.commit()
    return logs


# ==================== MARKERS ====================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "api: mark test as an API test")
    config.addinivalue_line("markers", "database: mark test as requiring database")
