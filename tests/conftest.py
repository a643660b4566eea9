"""
Shared test fixtures and configuration for pytest.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from quota_drugs.main import app
from quota_drugs.db.base import Base
from quota_drugs.api.dependencies import get_as_of, get_db
from quota_drugs.models import Department, Drug, Enrollment, Patient
from quota_drugs.schemas.drug_schemas import CalculationMethod


# Test database configuration
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed "today" for every compliance and cost calculation under test
AS_OF = date(2026, 1, 15)


@pytest.fixture
async def test_engine():
    """
    One in-memory database per test.

    StaticPool keeps a single connection so the tables created here are the
    ones every session in the test sees.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def override_get_db(db_session: AsyncSession):
    """Override the get_db dependency for testing."""

    async def _override_get_db():
        yield db_session

    return _override_get_db


@pytest.fixture
async def client(override_get_db) -> AsyncGenerator[AsyncClient, None]:
    """
    Create test client with database and clock overrides.

    Every request is evaluated as of ``AS_OF``.
    """
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_as_of] = lambda: AS_OF
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def department(db_session: AsyncSession) -> Department:
    department = Department(name="Cardiology")
    db_session.add(department)
    await db_session.commit()
    await db_session.refresh(department)
    return department


@pytest.fixture
async def other_department(db_session: AsyncSession) -> Department:
    department = Department(name="Nephrology")
    db_session.add(department)
    await db_session.commit()
    await db_session.refresh(department)
    return department


@pytest.fixture
async def drug(db_session: AsyncSession, department: Department) -> Drug:
    """A drug with room for two active patients."""
    drug = Drug(
        name="Ticagrelor 90mg",
        department_id=department.id,
        quota_number=2,
        price=Decimal("14.00"),
        calculation_method=CalculationMethod.WEEKLY,
    )
    db_session.add(drug)
    await db_session.commit()
    await db_session.refresh(drug)
    return drug


@pytest.fixture
async def patient(db_session: AsyncSession) -> Patient:
    patient = Patient(name="SITI AMINAH", ic_number="800101-14-5566")
    db_session.add(patient)
    await db_session.commit()
    await db_session.refresh(patient)
    return patient


@pytest.fixture
def make_patient(db_session: AsyncSession):
    """Factory for extra patients with unique IC numbers."""
    counter = {"n": 0}

    async def _make_patient(name: str = "PATIENT") -> Patient:
        counter["n"] += 1
        patient = Patient(name=f"{name} {counter['n']}", ic_number=f"IC-{counter['n']:04d}")
        db_session.add(patient)
        await db_session.commit()
        await db_session.refresh(patient)
        return patient

    return _make_patient


@pytest.fixture
def make_enrollment(db_session: AsyncSession):
    """Insert an enrollment directly, bypassing the service rules."""

    async def _make_enrollment(patient: Patient, drug: Drug, **fields) -> Enrollment:
        fields.setdefault("prescription_start_date", date(2025, 1, 1))
        enrollment = Enrollment(patient_id=patient.id, drug_id=drug.id, **fields)
        db_session.add(enrollment)
        await db_session.commit()
        await db_session.refresh(enrollment)
        return enrollment

    return _make_enrollment


# Helper functions for tests
def assert_valid_enrollment_response(data: dict):
    """Assert that response carries the derived enrollment fields."""
    assert "id" in data
    assert "patient_name" in data
    assert "drug_name" in data
    assert "department_name" in data
    assert "days_since_refill" in data
    assert "refill_tag" in data
    assert "is_potential_defaulter" in data
