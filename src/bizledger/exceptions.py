"""Domain exceptions.

Every error carries a stable ``code`` used by the API layer and a message
that can be shown to the user as-is.
"""

from __future__ import annotations

from uuid import UUID


class BizLedgerError(Exception):
    """Base class for domain errors."""

    code = "BIZLEDGER_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(BizLedgerError):
    """Input failed a business validation rule."""

    code = "VALIDATION_ERROR"


class RecordNotFoundError(BizLedgerError):
    """Requested row does not exist (or is outside the caller's organization)."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: UUID):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class DuplicateSalaryRecordError(BizLedgerError):
    """A salary record already exists for the employee and period."""

    code = "DUPLICATE_SALARY_RECORD"

    def __init__(self, employee_id: UUID, month: int, year: int):
        self.employee_id = employee_id
        self.month = month
        self.year = year
        super().__init__(
            f"Salary record already exists for employee {employee_id} for {year:04d}-{month:02d}"
        )


class ImmutableRecordError(BizLedgerError):
    """Attempt to modify a paid salary record."""

    code = "IMMUTABLE_RECORD"

    def __init__(self, entity_type: str, entity_id: UUID, reason: str | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        msg = f"{entity_type} {entity_id} cannot be modified"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PaidSalaryLockError(ImmutableRecordError):
    """Attempt to modify an advance that a paid salary record consumed."""

    code = "PAID_SALARY_LOCK"

    def __init__(self, advance_id: UUID, salary_record_id: UUID):
        self.salary_record_id = salary_record_id
        super().__init__(
            "Advance",
            advance_id,
            f"it was deducted by paid salary record {salary_record_id}",
        )


class NegativeNetPayableError(ValidationError):
    """Edited salary figures would make net payable negative."""

    code = "NEGATIVE_NET_PAYABLE"


class InvalidTransitionError(BizLedgerError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ImpersonationError(BizLedgerError):
    """Impersonation requested by a non super-admin or for a missing organization."""

    code = "IMPERSONATION_ERROR"


class AccessDeniedError(BizLedgerError):
    """Access check denied the request.

    ``code`` is the decision kind in upper case (``DENIED_BY_ROLE`` and so
    on), so callers always see the specific reason.
    """

    code = "ACCESS_DENIED"

    def __init__(self, reason: str, message: str):
        self.reason = reason
        self.code = reason.upper()
        super().__init__(message)

    @property
    def unauthenticated(self) -> bool:
        return self.reason == "denied_unauthenticated"
