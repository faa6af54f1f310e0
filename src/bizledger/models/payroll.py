"""Salary record and salary advance models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from bizledger.calculators.types import AdvanceDeduction
from bizledger.models.base import Base, TimestampMixin, UpdatedAtMixin

if TYPE_CHECKING:
    from bizledger.models.employee import Employee


class DeductionDetailsType(TypeDecorator):
    """Ordered list of AdvanceDeduction stored as a JSON array."""

    impl = JSON
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> list[dict[str, Any]]:
        return [d.to_json() for d in (value or [])]

    def process_result_value(self, value: Any, dialect: Any) -> list[AdvanceDeduction]:
        return [AdvanceDeduction.from_json(item) for item in (value or [])]


class UUIDListType(TypeDecorator):
    """List of UUIDs stored as a JSON array of strings."""

    impl = JSON
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> list[str]:
        return [str(v) for v in (value or [])]

    def process_result_value(self, value: Any, dialect: Any) -> list[UUID]:
        return [UUID(str(v)) for v in (value or [])]


class SalaryRecord(Base, TimestampMixin, UpdatedAtMixin):
    """Monthly salary of one employee.

    ``advance`` and ``advance_deduction_details`` are written by the
    reconciliation engine only. The JSON columns are reassigned, never
    mutated in place, so the ORM sees every change.
    """

    __tablename__ = "salary_record"

    salary_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    basic_salary: Mapped[Decimal] = mapped_column(nullable=False)
    bonus: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    deductions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    advance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    net_payable: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    advance_deducted_ids: Mapped[list[UUID]] = mapped_column(
        UUIDListType, nullable=False, default=list
    )
    advance_deduction_details: Mapped[list[AdvanceDeduction]] = mapped_column(
        DeductionDetailsType, nullable=False, default=list
    )

    __table_args__ = (
        UniqueConstraint("employee_id", "month", "year", name="salary_record_employee_period_unique"),
        CheckConstraint("month BETWEEN 1 AND 12", name="salary_record_month_check"),
        CheckConstraint("status IN ('pending', 'paid')", name="salary_record_status_check"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="salary_records")

    @property
    def gross(self) -> Decimal:
        return self.basic_salary + self.bonus

    def deduction_for(self, advance_id: UUID) -> AdvanceDeduction | None:
        """Snapshot entry for an advance, if this record consumed it."""
        for entry in self.advance_deduction_details:
            if entry.advance_id == advance_id:
                return entry
        return None


class SalaryAdvance(Base, TimestampMixin, UpdatedAtMixin):
    """Cash advance to be recouped from a designated salary month."""

    __tablename__ = "salary_advance"

    advance_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    remaining_balance: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    deduct_month: Mapped[str] = mapped_column(String(7), nullable=False)
    advance_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    deducted_from_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    deducted_from_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="salary_advance_amount_positive"),
        CheckConstraint(
            "remaining_balance >= 0 AND remaining_balance <= amount",
            name="salary_advance_balance_range",
        ),
        CheckConstraint("status IN ('active', 'settled')", name="salary_advance_status_check"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="advances")

    @property
    def is_untouched(self) -> bool:
        """No amount has been deducted from this advance."""
        return self.remaining_balance == self.amount
