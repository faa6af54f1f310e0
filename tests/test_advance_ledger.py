"""Tests for the advance ledger."""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from bizledger.exceptions import RecordNotFoundError, ValidationError
from bizledger.services.advance_ledger import AdvanceLedger
from bizledger.services.state_machine import AdvanceStatus
from tests.conftest import add_advance, audit_actions

pytestmark = pytest.mark.asyncio


class TestCreateAdvance:
    async def test_starts_fully_outstanding(self, session, employee):
        advance = await AdvanceLedger(session).create_advance(
            employee.employee_id, Decimal("500"), "2024-03", reason="Medical"
        )

        assert advance.amount == Decimal("500.00")
        assert advance.remaining_balance == Decimal("500.00")
        assert advance.status == "active"
        assert advance.organization_id == employee.organization_id
        assert advance.advance_date == date.today()
        assert advance.deducted_from_month is None
        assert "advance_created" in await audit_actions(session)

    @pytest.mark.parametrize("amount", ["0", "-10"])
    async def test_amount_must_be_positive(self, session, employee, amount):
        with pytest.raises(ValidationError):
            await AdvanceLedger(session).create_advance(
                employee.employee_id, Decimal(amount), "2024-03"
            )

    async def test_deduct_month_format(self, session, employee):
        with pytest.raises(ValidationError):
            await AdvanceLedger(session).create_advance(
                employee.employee_id, Decimal("100"), "March 2024"
            )

    async def test_unknown_employee(self, session, organization):
        with pytest.raises(RecordNotFoundError):
            await AdvanceLedger(session).create_advance(uuid4(), Decimal("100"), "2024-03")

    async def test_employee_of_other_organization(self, session, employee):
        with pytest.raises(RecordNotFoundError):
            await AdvanceLedger(session).create_advance(
                employee.employee_id, Decimal("100"), "2024-03", organization_id=uuid4()
            )


class TestPendingAdvances:
    async def test_strict_month_equality(self, session, employee):
        march = await add_advance(session, employee, "100", "2024-03")
        await add_advance(session, employee, "100", "2024-02")
        await add_advance(session, employee, "100", "2024-04")

        pending = await AdvanceLedger(session).pending_advances_for(employee.employee_id, "2024-03")

        assert [a.advance_id for a in pending] == [march.advance_id]

    async def test_excludes_settled_and_empty(self, session, employee):
        settled = await add_advance(session, employee, "100", "2024-03")
        settled.remaining_balance = Decimal("0")
        settled.status = AdvanceStatus.SETTLED.value
        partial = await add_advance(session, employee, "100", "2024-03")
        partial.remaining_balance = Decimal("40")
        await session.flush()

        pending = await AdvanceLedger(session).pending_advances_for(employee.employee_id, "2024-03")

        assert [a.advance_id for a in pending] == [partial.advance_id]

    async def test_oldest_created_first(self, session, employee):
        newer = await add_advance(
            session, employee, "100", "2024-03", created_at=datetime(2024, 2, 10, tzinfo=timezone.utc)
        )
        older = await add_advance(
            session, employee, "100", "2024-03", created_at=datetime(2024, 1, 5, tzinfo=timezone.utc)
        )

        pending = await AdvanceLedger(session).pending_advances_for(employee.employee_id, "2024-03")

        assert [a.advance_id for a in pending] == [older.advance_id, newer.advance_id]

    async def test_other_employees_excluded(self, session, employee):
        await add_advance(session, employee, "100", "2024-03")

        assert await AdvanceLedger(session).pending_advances_for(uuid4(), "2024-03") == []


class TestQueries:
    async def test_get_advance_scoped_to_organization(self, session, employee):
        advance = await add_advance(session, employee, "100", "2024-03")
        ledger = AdvanceLedger(session)

        assert (await ledger.get_advance(advance.advance_id)).advance_id == advance.advance_id
        with pytest.raises(RecordNotFoundError):
            await ledger.get_advance(advance.advance_id, organization_id=uuid4())

    async def test_list_filters_by_status(self, session, employee, organization):
        active = await add_advance(session, employee, "100", "2024-03")
        settled = await add_advance(session, employee, "100", "2024-04")
        settled.remaining_balance = Decimal("0")
        settled.status = AdvanceStatus.SETTLED.value
        await session.flush()
        ledger = AdvanceLedger(session)

        everything = await ledger.list_advances(organization.organization_id)
        only_active = await ledger.list_advances(
            organization.organization_id, status=AdvanceStatus.ACTIVE
        )

        assert {a.advance_id for a in everything} == {active.advance_id, settled.advance_id}
        assert [a.advance_id for a in only_active] == [active.advance_id]
