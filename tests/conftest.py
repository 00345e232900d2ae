"""
Pytest Configuration and Shared Fixtures
========================================

This module provides shared fixtures for all MediTrack tests.
Fixtures include database sessions, test clients, and factories for
users, medicines and dose logs.
"""

import os
import sys
from datetime import datetime, date, timedelta
from typing import Callable, Generator, List, Optional

# Keep the app's own engine off the filesystem during tests
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base, get_db
from models import User, Medicine, DoseLog, DailyAdherenceStat, Relationship, UserRole, DoseStatus
from app import app


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


# ==================== DATE FIXTURES ====================

@pytest.fixture
def today() -> date:
    """Fixed evaluation day for window tests"""
    return date(2024, 3, 15)


# ==================== FACTORY FIXTURES ====================

@pytest.fixture
def make_user(db_session: Session) -> Callable[..., User]:
    """Factory for users of any role"""
    counter = {"n": 0}

    def _make(name: str = "Test Patient", role: UserRole = UserRole.PATIENT, **kwargs) -> User:
        counter["n"] += 1
        user = User(
            name=name,
            role=role,
            unique_code=kwargs.pop("unique_code", f"{role.value[:3].upper()}{counter['n']:04d}"),
            **kwargs
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_medicine(db_session: Session) -> Callable[..., Medicine]:
    """Factory for medicines"""

    def _make(
        patient: User,
        name: str = "Metformin",
        times: Optional[List[str]] = None,
        stock: int = 30,
        **kwargs
    ) -> Medicine:
        medicine = Medicine(
            patient_id=patient.id,
            name=name,
            dosage=kwargs.pop("dosage", "500mg"),
            frequency=kwargs.pop("frequency", "once daily"),
            times=times if times is not None else ["08:00"],
            stock=stock,
            **kwargs
        )
        db_session.add(medicine)
        db_session.commit()
        db_session.refresh(medicine)
        return medicine

    return _make


@pytest.fixture
def make_log(db_session: Session) -> Callable[..., DoseLog]:
    """
    Factory for dose logs

    delay is the number of minutes between scheduled and taken time;
    it only applies to taken logs.
    """

    def _make(
        medicine: Medicine,
        scheduled_time: datetime,
        status: DoseStatus = DoseStatus.TAKEN,
        delay: Optional[float] = 0,
        **kwargs
    ) -> DoseLog:
        taken_at = kwargs.pop("taken_at", None)
        if taken_at is None and status == DoseStatus.TAKEN and delay is not None:
            taken_at = scheduled_time + timedelta(minutes=delay)

        log = DoseLog(
            patient_id=medicine.patient_id,
            medicine_id=medicine.id,
            scheduled_time=scheduled_time,
            taken_at=taken_at,
            status=status,
            **kwargs
        )
        db_session.add(log)
        db_session.commit()
        db_session.refresh(log)
        return log

    return _make


@pytest.fixture
def make_stat(db_session: Session) -> Callable[..., DailyAdherenceStat]:
    """Factory for stored daily adherence rows"""

    def _make(patient: User, day: date, rate: float, total: int = 2) -> DailyAdherenceStat:
        stat = DailyAdherenceStat(
            patient_id=patient.id,
            date=day,
            total_doses=total,
            taken_doses=round(total * rate / 100),
            adherence_rate=rate
        )
        db_session.add(stat)
        db_session.commit()
        return stat

    return _make


@pytest.fixture
def link(db_session: Session) -> Callable[..., Relationship]:
    """Link a caregiver or doctor to a patient"""

    def _link(patient: User, other: User) -> Relationship:
        relationship = Relationship(
            patient_id=patient.id,
            caregiver_id=other.id if other.role == UserRole.CAREGIVER else None,
            doctor_id=other.id if other.role == UserRole.DOCTOR else None,
            relationship_type=other.role.value
        )
        db_session.add(relationship)
        db_session.commit()
        return relationship

    return _link


# ==================== SAMPLE DATA FIXTURES ====================

@pytest.fixture
def test_patient(make_user) -> User:
    """Create and return a test patient"""
    return make_user("John Doe", UserRole.PATIENT, age=59)


@pytest.fixture
def test_caregiver(make_user) -> User:
    return make_user("Jane Doe", UserRole.CAREGIVER, relation="daughter")


@pytest.fixture
def test_doctor(make_user) -> User:
    return make_user("Dr. Smith", UserRole.DOCTOR, specialization="Cardiology")


@pytest.fixture
def test_medicine(make_medicine, test_patient: User) -> Medicine:
    """Create and return a test medicine linked to test patient"""
    return make_medicine(test_patient, "Metformin", times=["08:00", "20:00"], stock=30)


# ==================== PYTEST CONFIGURATION ====================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "api: mark test as API test"
    )
    config.addinivalue_line(
        "markers", "database: mark test as requiring database"
    )
