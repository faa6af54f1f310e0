"""Employee model."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bizledger.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from bizledger.models.identity import Organization
    from bizledger.models.payroll import SalaryAdvance, SalaryRecord


class Employee(Base, TimestampMixin):
    """Employee record."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    basic_salary: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    # Relationships
    organization: Mapped[Organization] = relationship(back_populates="employees")
    salary_records: Mapped[list[SalaryRecord]] = relationship(back_populates="employee")
    advances: Mapped[list[SalaryAdvance]] = relationship(back_populates="employee")
