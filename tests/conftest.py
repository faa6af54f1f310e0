"""Pytest fixtures for bizledger tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from bizledger.config import Settings
from bizledger.database import create_session_factory, get_engine
from bizledger.models import (
    AuditEvent,
    Base,
    Employee,
    Organization,
    OrganizationMember,
    SalaryAdvance,
    Subscription,
    UserRole,
)
from bizledger.services.audit_service import AuditService
from bizledger.services.salary_service import SalaryService

# In-memory SQLite shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_settings(reconciliation_mode: str = "best_effort") -> Settings:
    return Settings(
        database_url=TEST_DATABASE_URL,
        app_version="test",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="DEBUG",
        reconciliation_mode=reconciliation_mode,
    )


@pytest.fixture
async def engine():
    """Create test database engine with a fresh schema."""
    engine = get_engine(TEST_DATABASE_URL, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def salary_service(session: AsyncSession, settings: Settings) -> SalaryService:
    return SalaryService(session, AuditService(session), settings)


# ============================================================================
# Tenancy
# ============================================================================


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
async def organization(session: AsyncSession, owner_id: UUID) -> Organization:
    """Organization with an owner membership and an active pro subscription."""
    org = Organization(organization_id=uuid4(), name="Acme Traders", owner_id=owner_id)
    session.add(org)
    await session.flush()

    session.add_all(
        [
            OrganizationMember(
                organization_id=org.organization_id, user_id=owner_id, role="owner"
            ),
            Subscription(organization_id=org.organization_id, plan="pro", status="active"),
        ]
    )
    await session.flush()
    return org


async def add_member(
    session: AsyncSession, organization: Organization, role: str, user_id: UUID | None = None
) -> UUID:
    """Add a member with ``role`` and return their user id."""
    user_id = user_id or uuid4()
    session.add(
        OrganizationMember(
            organization_id=organization.organization_id, user_id=user_id, role=role
        )
    )
    await session.flush()
    return user_id


@pytest.fixture
async def super_admin_id(session: AsyncSession) -> UUID:
    user_id = uuid4()
    session.add(UserRole(user_id=user_id, role="super_admin"))
    await session.flush()
    return user_id


async def set_subscription(
    session: AsyncSession,
    organization: Organization,
    plan: str = "pro",
    status: str = "active",
    trial_ends_at: datetime | None = None,
) -> Subscription:
    result = await session.execute(
        select(Subscription).where(Subscription.organization_id == organization.organization_id)
    )
    subscription = result.scalar_one()
    subscription.plan = plan
    subscription.status = status
    subscription.trial_ends_at = trial_ends_at
    await session.flush()
    return subscription


def days_from_now(days: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


# ============================================================================
# Payroll
# ============================================================================


@pytest.fixture
async def employee(session: AsyncSession, organization: Organization) -> Employee:
    emp = Employee(
        employee_id=uuid4(),
        organization_id=organization.organization_id,
        full_name="Priya Sharma",
        basic_salary=Decimal("1000.00"),
    )
    session.add(emp)
    await session.flush()
    return emp


async def add_advance(
    session: AsyncSession,
    employee: Employee,
    amount: str,
    deduct_month: str,
    created_at: datetime | None = None,
) -> SalaryAdvance:
    """Insert an untouched advance, optionally with a fixed creation time."""
    advance = SalaryAdvance(
        employee_id=employee.employee_id,
        organization_id=employee.organization_id,
        amount=Decimal(amount),
        remaining_balance=Decimal(amount),
        status="active",
        deduct_month=deduct_month,
    )
    if created_at is not None:
        advance.created_at = created_at
    session.add(advance)
    await session.flush()
    return advance


async def reload_advance(session: AsyncSession, advance_id: UUID) -> SalaryAdvance:
    result = await session.execute(
        select(SalaryAdvance)
        .where(SalaryAdvance.advance_id == advance_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def audit_actions(session: AsyncSession) -> list[str]:
    result = await session.execute(select(AuditEvent.action).order_by(AuditEvent.created_at))
    return list(result.scalars().all())
