"""
Test configuration and shared fixtures for the Clinic Reception test suite.

Tests run against a throwaway SQLite database (or TEST_DATABASE_URL when set).
The schema is created once per session and every table is emptied after each
test, so every test starts from a clean database state.
"""

import os
import tempfile

# Point the application at the test database before any app module reads DATABASE_URL
_TEST_DB_DIR = tempfile.mkdtemp(prefix="clinic_reception_test_")
TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
)
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

import pytest
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import services.visit_queue_hub as visit_queue_hub_module
from core.database import Base, SessionLocal, engine, get_db
from models import Patient, StaffUser
from services.jwt_service import jwt_service
from services.visit_queue_hub import VisitQueueHub


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """
    Create the schema once for the whole test session.

    Tables are dropped again when the session ends.
    """
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    yield

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def clean_tables():
    """Empty every table after each test."""
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(autouse=True)
def visit_queue_hub(monkeypatch) -> VisitQueueHub:
    """Give every test its own global visit queue hub (no leftover subscribers)."""
    hub = VisitQueueHub()
    monkeypatch.setattr(visit_queue_hub_module, "_visit_queue_hub", hub)
    return hub


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """Provide a database session bound to the test database."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """
    TestClient whose requests use the test's database session.

    The lifespan (and therefore the public status aggregator) is not started.
    """
    def override_get_db():
        yield db_session

    from main import app
    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def staff_user(db_session: Session) -> StaffUser:
    """An active staff account with password 'correct-horse'."""
    user = StaffUser(
        email="reception@example.com",
        password_hash=jwt_service.hash_password("correct-horse"),
        display_name="受付スタッフ",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def imported_patient(db_session: Session) -> Patient:
    """An unlinked, staff-imported patient."""
    patient = Patient(patient_id="1001", name="山田 太郎", created_by_type="staff")
    db_session.add(patient)
    db_session.commit()
    return patient
