"""Salary record state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from bizledger.exceptions import ImmutableRecordError, InvalidTransitionError

if TYPE_CHECKING:
    from bizledger.models import SalaryRecord


class SalaryStatus(str, Enum):
    """Salary record status values."""

    PENDING = "pending"
    PAID = "paid"


class AdvanceStatus(str, Enum):
    """Salary advance status values."""

    ACTIVE = "active"
    SETTLED = "settled"


class SalaryStateMachine:
    """State machine for salary record status transitions.

    Allowed transitions:
    - pending → paid

    A paid record is terminal: it cannot be edited, deleted or moved back,
    and neither can any advance it consumed.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        SalaryStatus.PENDING: [SalaryStatus.PAID],
        SalaryStatus.PAID: [],  # Terminal state
    }

    MUTABLE = {SalaryStatus.PENDING}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def is_mutable(cls, status: str) -> bool:
        """Check if a record in this status may be edited or deleted."""
        return status in cls.MUTABLE

    @classmethod
    def validate_mutation(cls, record: SalaryRecord, operation: str) -> None:
        """Raise ImmutableRecordError unless ``record`` can be changed."""
        if not cls.is_mutable(record.status):
            raise ImmutableRecordError(
                "SalaryRecord",
                record.salary_record_id,
                f"cannot {operation} a salary record with status '{record.status}'",
            )
