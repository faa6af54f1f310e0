"""Fixtures for API tests: committed seed data and an ASGI client."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from bizledger.api.app import create_app
from bizledger.api.dependencies import get_app_settings, get_db_session
from bizledger.models import Employee, Organization, OrganizationMember, Subscription, UserRole
from tests.conftest import make_settings


@dataclass
class SeedData:
    organization_id: UUID
    owner_id: UUID
    accounts_id: UUID
    staff_id: UUID
    super_admin_id: UUID
    employee_id: UUID


@pytest.fixture
async def seed(session_factory) -> SeedData:
    """Organization with owner/accounts/staff members, an employee and a super-admin."""
    data = SeedData(
        organization_id=uuid4(),
        owner_id=uuid4(),
        accounts_id=uuid4(),
        staff_id=uuid4(),
        super_admin_id=uuid4(),
        employee_id=uuid4(),
    )
    async with session_factory() as session:
        session.add(
            Organization(
                organization_id=data.organization_id,
                name="Acme Traders",
                owner_id=data.owner_id,
            )
        )
        await session.flush()
        session.add_all(
            [
                OrganizationMember(
                    organization_id=data.organization_id, user_id=data.owner_id, role="owner"
                ),
                OrganizationMember(
                    organization_id=data.organization_id, user_id=data.accounts_id, role="accounts"
                ),
                OrganizationMember(
                    organization_id=data.organization_id, user_id=data.staff_id, role="staff"
                ),
                Subscription(organization_id=data.organization_id, plan="pro", status="active"),
                UserRole(user_id=data.super_admin_id, role="super_admin"),
                Employee(
                    employee_id=data.employee_id,
                    organization_id=data.organization_id,
                    full_name="Priya Sharma",
                    basic_salary=Decimal("1000.00"),
                ),
            ]
        )
        await session.commit()
    return data


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with the test database."""
    app = create_app()

    async def override_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_app_settings] = lambda: make_settings()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def as_user(user_id: UUID, impersonate: UUID | None = None) -> dict[str, str]:
    headers = {"X-User-ID": str(user_id)}
    if impersonate is not None:
        headers["X-Impersonate-Organization"] = str(impersonate)
    return headers
