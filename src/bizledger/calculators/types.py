"""Type definitions for salary reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

CENTS = Decimal("0.01")


def to_money(value: Decimal | int | str) -> Decimal:
    """Normalize an amount to two decimal places."""
    return Decimal(str(value)).quantize(CENTS)


@dataclass(frozen=True)
class AdvanceDeduction:
    """One advance consumed by a salary record.

    A salary record keeps an ordered list of these as its deduction
    snapshot; the order is the order in which advances were consumed.
    """

    advance_id: UUID
    amount_deducted: Decimal
    remaining_after: Decimal

    def to_json(self) -> dict[str, Any]:
        return {
            "advance_id": str(self.advance_id),
            "amount_deducted": str(self.amount_deducted),
            "remaining_after": str(self.remaining_after),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> AdvanceDeduction:
        return cls(
            advance_id=UUID(str(data["advance_id"])),
            amount_deducted=to_money(data["amount_deducted"]),
            remaining_after=to_money(data["remaining_after"]),
        )


@dataclass(frozen=True)
class AdvanceBalance:
    """Consumable view of an outstanding advance."""

    advance_id: UUID
    remaining_balance: Decimal
    created_at: datetime | None = None
    advance_date: date | None = None


@dataclass
class Allocation:
    """Result of consuming advances against a deductible ceiling."""

    ceiling: Decimal
    deductions: list[AdvanceDeduction] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((d.amount_deducted for d in self.deductions), Decimal("0.00"))

    @property
    def advance_ids(self) -> list[UUID]:
        return [d.advance_id for d in self.deductions]
