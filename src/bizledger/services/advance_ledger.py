"""Salary advance ledger.

Creates advances and answers which of them a salary period may consume.
Balances are only ever changed by SalaryService.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizledger.calculators import parse_period, to_money
from bizledger.exceptions import RecordNotFoundError, ValidationError
from bizledger.models import Employee, SalaryAdvance
from bizledger.services.audit_service import AuditService
from bizledger.services.state_machine import AdvanceStatus


def validate_advance_amount(amount: Decimal) -> Decimal:
    value = to_money(amount)
    if value <= 0:
        raise ValidationError("Advance amount must be greater than zero")
    return value


class AdvanceLedger:
    """Queries and creation of salary advances."""

    def __init__(self, session: AsyncSession, audit: AuditService | None = None):
        self.session = session
        self.audit = audit or AuditService(session)

    async def get_employee(self, employee_id: UUID, organization_id: UUID | None = None) -> Employee:
        employee = await self.session.get(Employee, employee_id)
        if employee is None or (
            organization_id is not None and employee.organization_id != organization_id
        ):
            raise RecordNotFoundError("Employee", employee_id)
        return employee

    async def create_advance(
        self,
        employee_id: UUID,
        amount: Decimal,
        deduct_month: str,
        reason: str | None = None,
        advance_date: date | None = None,
        organization_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> SalaryAdvance:
        """Record a new advance with its full amount outstanding."""
        value = validate_advance_amount(amount)
        parse_period(deduct_month)
        employee = await self.get_employee(employee_id, organization_id)

        advance = SalaryAdvance(
            employee_id=employee.employee_id,
            organization_id=employee.organization_id,
            amount=value,
            remaining_balance=value,
            status=AdvanceStatus.ACTIVE.value,
            deduct_month=deduct_month,
            advance_date=advance_date or date.today(),
            reason=reason,
        )
        self.session.add(advance)
        await self.session.flush()

        await self.audit.record(
            action="advance_created",
            entity_type="salary_advance",
            entity_id=advance.advance_id,
            organization_id=advance.organization_id,
            actor_user_id=actor_user_id,
            details={"employee_id": employee_id, "amount": value, "deduct_month": deduct_month},
        )
        return advance

    async def get_advance(
        self,
        advance_id: UUID,
        organization_id: UUID | None = None,
        lock: bool = False,
    ) -> SalaryAdvance:
        """Load an advance, optionally locking its row, re-reading the database."""
        query = select(SalaryAdvance).where(SalaryAdvance.advance_id == advance_id)
        if organization_id is not None:
            query = query.where(SalaryAdvance.organization_id == organization_id)
        if lock:
            query = query.with_for_update()
        result = await self.session.execute(query.execution_options(populate_existing=True))
        advance = result.scalar_one_or_none()
        if advance is None:
            raise RecordNotFoundError("SalaryAdvance", advance_id)
        return advance

    async def pending_advances_for(
        self,
        employee_id: UUID,
        target_month: str,
        lock: bool = False,
    ) -> list[SalaryAdvance]:
        """Active advances with a balance designated for exactly ``target_month``.

        Ordered oldest first, which is the order salaries consume them in.
        """
        query = (
            select(SalaryAdvance)
            .where(
                SalaryAdvance.employee_id == employee_id,
                SalaryAdvance.status == AdvanceStatus.ACTIVE.value,
                SalaryAdvance.remaining_balance > 0,
                SalaryAdvance.deduct_month == target_month,
            )
            .order_by(
                SalaryAdvance.created_at,
                SalaryAdvance.advance_date,
                SalaryAdvance.advance_id,
            )
        )
        if lock:
            query = query.with_for_update()
        result = await self.session.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def list_advances(
        self,
        organization_id: UUID,
        employee_id: UUID | None = None,
        status: AdvanceStatus | None = None,
    ) -> list[SalaryAdvance]:
        query = select(SalaryAdvance).where(SalaryAdvance.organization_id == organization_id)
        if employee_id is not None:
            query = query.where(SalaryAdvance.employee_id == employee_id)
        if status is not None:
            query = query.where(SalaryAdvance.status == status.value)
        result = await self.session.execute(query.order_by(SalaryAdvance.created_at))
        return list(result.scalars().all())
