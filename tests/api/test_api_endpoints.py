"""API endpoint tests over an in-memory database."""

import json
import warnings
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from bizledger.api.app import error_status
from bizledger.api.routes.health import ready
from bizledger.exceptions import ValidationError
from bizledger.models import SalaryAdvance
from tests.api.conftest import as_user

pytestmark = pytest.mark.asyncio


def salaries_url(seed) -> str:
    return f"/api/v1/organizations/{seed.organization_id}/salaries"


def advances_url(seed) -> str:
    return f"/api/v1/organizations/{seed.organization_id}/advances"


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "healthy"
        assert body["version"] == "test"
        assert body["reconciliation_mode"] == "best_effort"

    async def test_ready_and_live(self, client):
        assert (await client.get("/ready")).json() == {"status": "ready"}
        assert (await client.get("/live")).json() == {"status": "alive"}

    async def test_ready_when_database_down(self):
        class UnreachableSession:
            async def execute(self, statement):
                raise OperationalError("SELECT 1", {}, ConnectionError("refused"))

        response = await ready(UnreachableSession())

        assert response.status_code == 503
        assert json.loads(response.body) == {"status": "unavailable"}


class TestAccessEndpoints:
    async def test_resolve_role(self, client, seed):
        response = await client.get(
            "/api/v1/roles/resolve",
            params={"organization_id": str(seed.organization_id)},
            headers=as_user(seed.accounts_id),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["org_role"] == "accounts"
        assert body["effective_role"] == "accounts"
        assert body["is_impersonating"] is False

    async def test_resolve_role_requires_user(self, client, seed):
        response = await client.get("/api/v1/roles/resolve")

        assert response.status_code == 401
        assert response.json()["code"] == "DENIED_UNAUTHENTICATED"

    async def test_check_access_returns_denial(self, client, seed):
        response = await client.post(
            "/api/v1/access/check",
            json={
                "organization_id": str(seed.organization_id),
                "module": "salary",
                "action": "view",
            },
            headers=as_user(seed.staff_id),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["allowed"] is False
        assert body["kind"] == "denied_by_role"
        assert body["required_roles"] == ["accounts", "owner"]

    async def test_check_access_super_admin_system_level(self, client, seed):
        response = await client.post(
            "/api/v1/access/check",
            json={"organization_id": str(seed.organization_id)},
            headers=as_user(seed.super_admin_id),
        )

        body = response.json()
        assert body["allowed"] is True
        assert body["system_level_only"] is True

    async def test_impersonation_header(self, client, seed):
        response = await client.get(
            "/api/v1/roles/resolve",
            headers=as_user(seed.super_admin_id, impersonate=seed.organization_id),
        )

        body = response.json()
        assert body["effective_role"] == "owner"
        assert body["is_impersonating"] is True
        assert body["organization_id"] == str(seed.organization_id)

    async def test_impersonation_by_non_super_admin(self, client, seed):
        response = await client.get(
            "/api/v1/roles/resolve",
            headers=as_user(seed.staff_id, impersonate=seed.organization_id),
        )

        assert response.status_code == 403
        assert response.json()["code"] == "IMPERSONATION_ERROR"

    async def test_malformed_user_header(self, client, seed):
        response = await client.get("/api/v1/roles/resolve", headers={"X-User-ID": "nope"})

        assert response.status_code == 401


class TestSalaryEndpoints:
    async def test_full_lifecycle(self, client, seed, session_factory):
        owner = as_user(seed.owner_id)
        created = await client.post(
            advances_url(seed),
            json={"employee_id": str(seed.employee_id), "amount": "500", "deduct_month": "2024-03"},
            headers=owner,
        )
        assert created.status_code == 201
        advance_id = created.json()["advance_id"]

        generated = await client.post(
            salaries_url(seed),
            json={"employee_id": str(seed.employee_id), "month": 3, "year": 2024},
            headers=owner,
        )
        assert generated.status_code == 201
        salary = generated.json()
        assert Decimal(salary["advance"]) == Decimal("500")
        assert Decimal(salary["net_payable"]) == Decimal("500")
        assert salary["advance_deducted_ids"] == [advance_id]
        assert salary["advance_deduction_details"][0]["advance_id"] == advance_id

        edited = await client.patch(
            f"{salaries_url(seed)}/{salary['salary_record_id']}",
            json={"bonus": "100"},
            headers=owner,
        )
        assert edited.status_code == 200
        assert Decimal(edited.json()["net_payable"]) == Decimal("600")

        deleted = await client.delete(
            f"{salaries_url(seed)}/{salary['salary_record_id']}", headers=owner
        )
        assert deleted.status_code == 204

        async with session_factory() as session:
            advance = (
                await session.execute(
                    select(SalaryAdvance).where(SalaryAdvance.employee_id == seed.employee_id)
                )
            ).scalar_one()
            assert advance.remaining_balance == Decimal("500")
            assert advance.status == "active"

    async def test_duplicate_is_conflict(self, client, seed):
        owner = as_user(seed.owner_id)
        payload = {"employee_id": str(seed.employee_id), "month": 3, "year": 2024}

        assert (await client.post(salaries_url(seed), json=payload, headers=owner)).status_code == 201
        response = await client.post(salaries_url(seed), json=payload, headers=owner)

        assert response.status_code == 409
        assert response.json()["code"] == "DUPLICATE_SALARY_RECORD"

    async def test_paid_record_is_locked(self, client, seed):
        owner = as_user(seed.owner_id)
        advance = await client.post(
            advances_url(seed),
            json={"employee_id": str(seed.employee_id), "amount": "200", "deduct_month": "2024-03"},
            headers=owner,
        )
        salary = await client.post(
            salaries_url(seed),
            json={"employee_id": str(seed.employee_id), "month": 3, "year": 2024},
            headers=owner,
        )
        salary_id = salary.json()["salary_record_id"]

        paid = await client.post(
            f"{salaries_url(seed)}/{salary_id}/pay",
            json={"paid_date": "2024-03-31"},
            headers=owner,
        )
        assert paid.status_code == 200
        assert paid.json()["status"] == "paid"

        edit = await client.patch(
            f"{salaries_url(seed)}/{salary_id}", json={"bonus": "5"}, headers=owner
        )
        assert edit.status_code == 409
        assert edit.json()["code"] == "IMMUTABLE_RECORD"

        advance_edit = await client.patch(
            f"{advances_url(seed)}/{advance.json()['advance_id']}",
            json={"amount": "300"},
            headers=owner,
        )
        assert advance_edit.status_code == 409
        assert advance_edit.json()["code"] == "PAID_SALARY_LOCK"

        advance_delete = await client.delete(
            f"{advances_url(seed)}/{advance.json()['advance_id']}", headers=owner
        )
        assert advance_delete.status_code == 409

    async def test_negative_net_is_unprocessable(self, client, seed):
        owner = as_user(seed.owner_id)
        salary = await client.post(
            salaries_url(seed),
            json={"employee_id": str(seed.employee_id), "month": 3, "year": 2024},
            headers=owner,
        )

        response = await client.patch(
            f"{salaries_url(seed)}/{salary.json()['salary_record_id']}",
            json={"deductions": "5000"},
            headers=owner,
        )

        assert response.status_code == 422
        assert response.json()["code"] == "NEGATIVE_NET_PAYABLE"

    async def test_missing_record_is_not_found(self, client, seed):
        response = await client.get(
            f"{salaries_url(seed)}/{uuid4()}", headers=as_user(seed.owner_id)
        )

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_list_salaries(self, client, seed):
        owner = as_user(seed.owner_id)
        for month in (1, 2):
            await client.post(
                salaries_url(seed),
                json={"employee_id": str(seed.employee_id), "month": month, "year": 2024},
                headers=owner,
            )

        response = await client.get(salaries_url(seed), params={"month": 2}, headers=owner)

        assert response.status_code == 200
        assert response.json()["total"] == 1


class TestSalaryAuthorization:
    async def test_unauthenticated(self, client, seed):
        response = await client.get(salaries_url(seed))

        assert response.status_code == 401
        assert response.json()["code"] == "DENIED_UNAUTHENTICATED"

    async def test_staff_cannot_view(self, client, seed):
        response = await client.get(salaries_url(seed), headers=as_user(seed.staff_id))

        assert response.status_code == 403
        assert response.json()["code"] == "DENIED_BY_ROLE"

    async def test_accounts_can_view_not_create(self, client, seed):
        headers = as_user(seed.accounts_id)

        view = await client.get(salaries_url(seed), headers=headers)
        create = await client.post(
            salaries_url(seed),
            json={"employee_id": str(seed.employee_id), "month": 3, "year": 2024},
            headers=headers,
        )

        assert view.status_code == 200
        assert create.status_code == 403

    async def test_outsider_is_not_a_member(self, client, seed):
        response = await client.get(salaries_url(seed), headers=as_user(uuid4()))

        assert response.status_code == 403
        assert response.json()["code"] == "DENIED_NOT_A_MEMBER"

    async def test_super_admin_needs_impersonation(self, client, seed):
        plain = await client.get(salaries_url(seed), headers=as_user(seed.super_admin_id))
        impersonating = await client.get(
            salaries_url(seed),
            headers=as_user(seed.super_admin_id, impersonate=seed.organization_id),
        )

        assert plain.status_code == 403
        assert impersonating.status_code == 200


class TestErrorStatus:
    async def test_validation_maps_without_deprecated_constants(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            code = error_status(ValidationError("bad input"))

        assert code == 422
