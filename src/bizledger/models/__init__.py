"""ORM models."""

from bizledger.models.audit import AuditEvent
from bizledger.models.base import Base, TimestampMixin, UpdatedAtMixin
from bizledger.models.employee import Employee
from bizledger.models.identity import Organization, OrganizationMember, Subscription, UserRole
from bizledger.models.payroll import SalaryAdvance, SalaryRecord

__all__ = [
    "AuditEvent",
    "Base",
    "Employee",
    "Organization",
    "OrganizationMember",
    "SalaryAdvance",
    "SalaryRecord",
    "Subscription",
    "TimestampMixin",
    "UpdatedAtMixin",
    "UserRole",
]
