"""Salary reconciliation service - keeps salary records and advances in step.

Operations:
- generate_salary: create a pending record, consuming eligible advances
- edit_salary: change basic/bonus/deductions with the advance total locked
- delete_salary: reverse every advance deduction, then delete the record
- mark_paid: pending → paid, after which the record is immutable
- edit_advance / delete_advance: adjust the pending record that consumed it

Advance balance updates after the salary insert follow RECONCILIATION_MODE:
in ``best_effort`` each one runs in its own savepoint and a failure is
logged and audited while the salary record stands; in ``transactional`` the
failure propagates and the whole operation is rolled back.
"""

from __future__ import annotations

import logging
from contextlib import nullcontext
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bizledger.calculators import (
    AdvanceBalance,
    AdvanceDeduction,
    allocate_advances,
    compute_net_payable,
    deductible_ceiling,
    parse_period,
    period_key,
    to_money,
)
from bizledger.calculators.allocator import ZERO
from bizledger.config import Settings, get_settings
from bizledger.exceptions import (
    DuplicateSalaryRecordError,
    NegativeNetPayableError,
    PaidSalaryLockError,
    RecordNotFoundError,
    ValidationError,
)
from bizledger.models import SalaryAdvance, SalaryRecord
from bizledger.services.advance_ledger import AdvanceLedger, validate_advance_amount
from bizledger.services.audit_service import AuditService
from bizledger.services.state_machine import AdvanceStatus, SalaryStateMachine, SalaryStatus

logger = logging.getLogger(__name__)


def _amount(value: Decimal | int | str, field: str) -> Decimal:
    amount = to_money(value)
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative")
    return amount


class SalaryService:
    """Service for the salary record lifecycle and its advance side effects."""

    def __init__(
        self,
        session: AsyncSession,
        audit: AuditService | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.audit = audit or AuditService(session)
        self.settings = settings or get_settings()
        self.ledger = AdvanceLedger(session, self.audit)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_salary(
        self,
        salary_record_id: UUID,
        organization_id: UUID | None = None,
        lock: bool = False,
    ) -> SalaryRecord:
        query = select(SalaryRecord).where(SalaryRecord.salary_record_id == salary_record_id)
        if organization_id is not None:
            query = query.where(SalaryRecord.organization_id == organization_id)
        if lock:
            query = query.with_for_update()
        result = await self.session.execute(query.execution_options(populate_existing=True))
        record = result.scalar_one_or_none()
        if record is None:
            raise RecordNotFoundError("SalaryRecord", salary_record_id)
        return record

    async def find_salary(self, employee_id: UUID, month: int, year: int) -> SalaryRecord | None:
        result = await self.session.execute(
            select(SalaryRecord).where(
                SalaryRecord.employee_id == employee_id,
                SalaryRecord.month == month,
                SalaryRecord.year == year,
            )
        )
        return result.scalar_one_or_none()

    async def list_salaries(
        self,
        organization_id: UUID,
        month: int | None = None,
        year: int | None = None,
        employee_id: UUID | None = None,
        status: SalaryStatus | None = None,
    ) -> list[SalaryRecord]:
        query = select(SalaryRecord).where(SalaryRecord.organization_id == organization_id)
        if month is not None:
            query = query.where(SalaryRecord.month == month)
        if year is not None:
            query = query.where(SalaryRecord.year == year)
        if employee_id is not None:
            query = query.where(SalaryRecord.employee_id == employee_id)
        if status is not None:
            query = query.where(SalaryRecord.status == status.value)
        query = query.order_by(SalaryRecord.year.desc(), SalaryRecord.month.desc())
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def referencing_salaries(
        self, advance: SalaryAdvance, lock: bool = False
    ) -> list[SalaryRecord]:
        """Salary records whose deduction snapshot includes ``advance``."""
        query = select(SalaryRecord).where(SalaryRecord.employee_id == advance.employee_id)
        if lock:
            query = query.with_for_update()
        result = await self.session.execute(query.execution_options(populate_existing=True))
        return [
            record
            for record in result.scalars().all()
            if advance.advance_id in record.advance_deducted_ids
            or record.deduction_for(advance.advance_id) is not None
        ]

    # ------------------------------------------------------------------
    # Salary record operations
    # ------------------------------------------------------------------

    async def generate_salary(
        self,
        employee_id: UUID,
        month: int,
        year: int,
        basic_salary: Decimal | None = None,
        bonus: Decimal = Decimal("0"),
        deductions: Decimal = Decimal("0"),
        notes: str | None = None,
        organization_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> SalaryRecord:
        """Create a pending salary record and consume the month's advances.

        Raises DuplicateSalaryRecordError before any advance is read when
        the employee already has a record for the period.
        """
        target_month = period_key(year, month)
        employee = await self.ledger.get_employee(employee_id, organization_id)

        basic = _amount(
            employee.basic_salary if basic_salary is None else basic_salary, "Basic salary"
        )
        bonus = _amount(bonus, "Bonus")
        deductions = _amount(deductions, "Deductions")

        if await self.find_salary(employee_id, month, year) is not None:
            raise DuplicateSalaryRecordError(employee_id, month, year)

        async with self._operation_scope():
            advances = await self.ledger.pending_advances_for(employee_id, target_month, lock=True)
            allocation = allocate_advances(
                deductible_ceiling(basic + bonus, deductions),
                [
                    AdvanceBalance(
                        advance_id=a.advance_id,
                        remaining_balance=a.remaining_balance,
                        created_at=a.created_at,
                        advance_date=a.advance_date,
                    )
                    for a in advances
                ],
            )

            record = SalaryRecord(
                employee_id=employee.employee_id,
                organization_id=employee.organization_id,
                month=month,
                year=year,
                basic_salary=basic,
                bonus=bonus,
                deductions=deductions,
                advance=allocation.total,
                net_payable=compute_net_payable(basic, bonus, deductions, allocation.total),
                status=SalaryStatus.PENDING.value,
                notes=notes,
                advance_deducted_ids=allocation.advance_ids,
                advance_deduction_details=list(allocation.deductions),
            )
            await self._insert_record(record)

            by_id = {a.advance_id: a for a in advances}
            failed: list[UUID] = []
            for deduction in allocation.deductions:
                applied = await self._apply_advance_update(
                    by_id[deduction.advance_id], deduction, record, actor_user_id
                )
                if not applied:
                    failed.append(deduction.advance_id)

        logger.info(
            "Generated salary %s for employee %s %s: advance=%s net=%s",
            record.salary_record_id,
            employee_id,
            target_month,
            record.advance,
            record.net_payable,
        )
        await self.audit.record(
            action="salary_generated",
            entity_type="salary_record",
            entity_id=record.salary_record_id,
            organization_id=record.organization_id,
            actor_user_id=actor_user_id,
            details={
                "employee_id": employee_id,
                "period": target_month,
                "advance": record.advance,
                "net_payable": record.net_payable,
                "advance_ids": record.advance_deducted_ids,
                "failed_advance_ids": failed,
            },
        )
        return record

    async def edit_salary(
        self,
        salary_record_id: UUID,
        basic_salary: Decimal | None = None,
        bonus: Decimal | None = None,
        deductions: Decimal | None = None,
        notes: str | None = None,
        organization_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> SalaryRecord:
        """Edit a pending record; the deducted advance amount stays as it is."""
        record = await self.get_salary(salary_record_id, organization_id, lock=True)
        SalaryStateMachine.validate_mutation(record, "edit")

        basic = record.basic_salary if basic_salary is None else _amount(basic_salary, "Basic salary")
        new_bonus = record.bonus if bonus is None else _amount(bonus, "Bonus")
        new_deductions = (
            record.deductions if deductions is None else _amount(deductions, "Deductions")
        )

        net_payable = compute_net_payable(basic, new_bonus, new_deductions, record.advance)
        if net_payable < 0:
            raise NegativeNetPayableError(
                f"Net payable cannot be negative (would be {net_payable})"
            )

        before = {
            "basic_salary": record.basic_salary,
            "bonus": record.bonus,
            "deductions": record.deductions,
            "net_payable": record.net_payable,
        }
        record.basic_salary = basic
        record.bonus = new_bonus
        record.deductions = new_deductions
        record.net_payable = net_payable
        if notes is not None:
            record.notes = notes
        await self.session.flush()

        await self.audit.record(
            action="salary_edited",
            entity_type="salary_record",
            entity_id=record.salary_record_id,
            organization_id=record.organization_id,
            actor_user_id=actor_user_id,
            details={"before": before, "net_payable": net_payable},
        )
        return record

    async def delete_salary(
        self,
        salary_record_id: UUID,
        organization_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> None:
        """Restore every consumed advance, then delete the pending record.

        All reversals and the delete share one savepoint: if any reversal
        fails the record is left in place.
        """
        record = await self.get_salary(salary_record_id, organization_id, lock=True)
        SalaryStateMachine.validate_mutation(record, "delete")

        details = list(record.advance_deduction_details)
        async with self.session.begin_nested():
            for entry in details:
                await self._reverse_deduction(entry, record)
            await self.session.delete(record)

        logger.info(
            "Deleted salary %s, restored %d advance(s)", salary_record_id, len(details)
        )
        await self.audit.record(
            action="salary_deleted",
            entity_type="salary_record",
            entity_id=salary_record_id,
            organization_id=record.organization_id,
            actor_user_id=actor_user_id,
            details={
                "employee_id": record.employee_id,
                "period": period_key(record.year, record.month),
                "restored": [entry.to_json() for entry in details],
            },
        )

    async def mark_paid(
        self,
        salary_record_id: UUID,
        paid_date: date | None = None,
        organization_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> SalaryRecord:
        """Transition pending → paid. Raises InvalidTransitionError otherwise."""
        record = await self.get_salary(salary_record_id, organization_id, lock=True)
        SalaryStateMachine.validate_transition(record.status, SalaryStatus.PAID.value)

        record.status = SalaryStatus.PAID.value
        record.paid_date = paid_date or date.today()
        await self.session.flush()

        await self.audit.record(
            action="salary_paid",
            entity_type="salary_record",
            entity_id=record.salary_record_id,
            organization_id=record.organization_id,
            actor_user_id=actor_user_id,
            details={"paid_date": record.paid_date, "net_payable": record.net_payable},
        )
        return record

    # ------------------------------------------------------------------
    # Advance operations that touch salary records
    # ------------------------------------------------------------------

    async def edit_advance(
        self,
        advance_id: UUID,
        amount: Decimal | None = None,
        deduct_month: str | None = None,
        reason: str | None = None,
        organization_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> SalaryAdvance:
        """Edit an advance and re-reconcile the pending record that consumed it.

        Raises PaidSalaryLockError if a paid record consumed the advance.
        """
        advance = await self.ledger.get_advance(advance_id, organization_id, lock=True)
        new_amount = advance.amount if amount is None else validate_advance_amount(amount)
        if deduct_month is not None:
            parse_period(deduct_month)

        records = await self.referencing_salaries(advance, lock=True)
        self._ensure_not_paid(advance, records)

        before = {
            "amount": advance.amount,
            "remaining_balance": advance.remaining_balance,
            "deduct_month": advance.deduct_month,
        }
        consumed = advance.amount - advance.remaining_balance

        async with self.session.begin_nested():
            advance.amount = new_amount
            if deduct_month is not None:
                advance.deduct_month = deduct_month
            if reason is not None:
                advance.reason = reason

            if records:
                for record in records:
                    self._reconsume(advance, record)
            else:
                remaining = max(ZERO, new_amount - consumed)
                advance.remaining_balance = remaining
                advance.status = (
                    AdvanceStatus.SETTLED.value if remaining == 0 else AdvanceStatus.ACTIVE.value
                )

        await self.audit.record(
            action="advance_edited",
            entity_type="salary_advance",
            entity_id=advance.advance_id,
            organization_id=advance.organization_id,
            actor_user_id=actor_user_id,
            details={
                "before": before,
                "amount": advance.amount,
                "remaining_balance": advance.remaining_balance,
                "deduct_month": advance.deduct_month,
                "salary_record_ids": [r.salary_record_id for r in records],
            },
        )
        return advance

    async def delete_advance(
        self,
        advance_id: UUID,
        organization_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> None:
        """Delete an advance, removing its deduction from any pending record.

        Raises PaidSalaryLockError if a paid record consumed the advance.
        """
        advance = await self.ledger.get_advance(advance_id, organization_id, lock=True)
        records = await self.referencing_salaries(advance, lock=True)
        self._ensure_not_paid(advance, records)

        async with self.session.begin_nested():
            for record in records:
                self._remove_deduction(record, advance.advance_id)
            await self.session.delete(advance)

        await self.audit.record(
            action="advance_deleted",
            entity_type="salary_advance",
            entity_id=advance_id,
            organization_id=advance.organization_id,
            actor_user_id=actor_user_id,
            details={
                "employee_id": advance.employee_id,
                "amount": advance.amount,
                "salary_record_ids": [r.salary_record_id for r in records],
            },
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _operation_scope(self) -> Any:
        if self.settings.is_transactional:
            return self.session.begin_nested()
        return nullcontext()

    async def _insert_record(self, record: SalaryRecord) -> None:
        try:
            async with self.session.begin_nested():
                self.session.add(record)
        except IntegrityError as exc:
            if await self.find_salary(record.employee_id, record.month, record.year) is None:
                raise
            raise DuplicateSalaryRecordError(record.employee_id, record.month, record.year) from exc

    def _consume_advance(
        self, advance: SalaryAdvance, remaining: Decimal, month: int, year: int
    ) -> None:
        advance.remaining_balance = remaining
        advance.status = AdvanceStatus.SETTLED.value if remaining == 0 else AdvanceStatus.ACTIVE.value
        advance.deducted_from_month = month
        advance.deducted_from_year = year

    async def _apply_advance_update(
        self,
        advance: SalaryAdvance,
        deduction: AdvanceDeduction,
        record: SalaryRecord,
        actor_user_id: UUID | None,
    ) -> bool:
        """Write one consumed balance; returns False if a best-effort update failed."""
        if self.settings.is_transactional:
            self._consume_advance(advance, deduction.remaining_after, record.month, record.year)
            await self.session.flush()
            return True

        try:
            async with self.session.begin_nested():
                self._consume_advance(
                    advance, deduction.remaining_after, record.month, record.year
                )
        except SQLAlchemyError as exc:
            logger.warning(
                "Failed to update advance %s for salary %s; salary record kept",
                deduction.advance_id,
                record.salary_record_id,
                exc_info=True,
            )
            await self.audit.warn(
                action="advance_update_failed",
                entity_type="salary_advance",
                entity_id=deduction.advance_id,
                organization_id=record.organization_id,
                actor_user_id=actor_user_id,
                details={
                    "salary_record_id": record.salary_record_id,
                    "amount_deducted": deduction.amount_deducted,
                    "remaining_after": deduction.remaining_after,
                    "error": str(exc),
                },
            )
            return False
        return True

    async def _reverse_deduction(self, entry: AdvanceDeduction, record: SalaryRecord) -> None:
        try:
            advance = await self.ledger.get_advance(entry.advance_id, lock=True)
        except RecordNotFoundError:
            logger.warning(
                "Advance %s deducted by salary %s no longer exists; nothing to restore",
                entry.advance_id,
                record.salary_record_id,
            )
            return

        restored = advance.remaining_balance + entry.amount_deducted
        if restored > advance.amount:
            logger.warning(
                "Restoring advance %s would exceed its amount (%s > %s); capping",
                advance.advance_id,
                restored,
                advance.amount,
            )
            restored = advance.amount

        advance.remaining_balance = restored
        advance.status = AdvanceStatus.ACTIVE.value
        advance.deducted_from_month = None
        advance.deducted_from_year = None
        await self.session.flush()

    def _ensure_not_paid(self, advance: SalaryAdvance, records: list[SalaryRecord]) -> None:
        for record in records:
            if not SalaryStateMachine.is_mutable(record.status):
                raise PaidSalaryLockError(advance.advance_id, record.salary_record_id)

    def _remove_deduction(self, record: SalaryRecord, advance_id: UUID) -> None:
        entry = record.deduction_for(advance_id)
        removed = entry.amount_deducted if entry else ZERO
        record.advance_deduction_details = [
            d for d in record.advance_deduction_details if d.advance_id != advance_id
        ]
        record.advance_deducted_ids = [i for i in record.advance_deducted_ids if i != advance_id]
        record.advance = to_money(record.advance - removed)
        record.net_payable = compute_net_payable(
            record.basic_salary, record.bonus, record.deductions, record.advance
        )

    def _reconsume(self, advance: SalaryAdvance, record: SalaryRecord) -> None:
        """Replace the advance's deduction on a pending record after an edit.

        The old contribution is reversed and, while the advance still targets
        the record's month, re-consumed up to what the record's ceiling allows
        once its other advances are accounted for.
        """
        entry = record.deduction_for(advance.advance_id)
        old_amount = entry.amount_deducted if entry else ZERO
        other_advances = to_money(record.advance - old_amount)

        take = ZERO
        if advance.deduct_month == period_key(record.year, record.month):
            room = deductible_ceiling(record.gross, record.deductions) - other_advances
            take = max(ZERO, min(advance.amount, room))

        details: list[AdvanceDeduction] = []
        replaced = False
        for d in record.advance_deduction_details:
            if d.advance_id != advance.advance_id:
                details.append(d)
            elif take > 0:
                details.append(
                    AdvanceDeduction(
                        advance_id=advance.advance_id,
                        amount_deducted=take,
                        remaining_after=advance.amount - take,
                    )
                )
                replaced = True
        if take > 0 and not replaced:
            details.append(
                AdvanceDeduction(
                    advance_id=advance.advance_id,
                    amount_deducted=take,
                    remaining_after=advance.amount - take,
                )
            )

        record.advance_deduction_details = details
        record.advance_deducted_ids = [d.advance_id for d in details]
        record.advance = to_money(other_advances + take)
        record.net_payable = compute_net_payable(
            record.basic_salary, record.bonus, record.deductions, record.advance
        )

        if take > 0:
            self._consume_advance(advance, advance.amount - take, record.month, record.year)
        else:
            advance.remaining_balance = advance.amount
            advance.status = AdvanceStatus.ACTIVE.value
            advance.deducted_from_month = None
            advance.deducted_from_year = None
