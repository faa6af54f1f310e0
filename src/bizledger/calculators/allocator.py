"""Advance allocation and net payable arithmetic.

Pure functions with no database access; the salary service feeds them
freshly loaded balances and persists what they return.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from decimal import Decimal

from bizledger.calculators.types import AdvanceBalance, AdvanceDeduction, Allocation, to_money
from bizledger.exceptions import ValidationError

ZERO = Decimal("0.00")

_PERIOD_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def period_key(year: int, month: int) -> str:
    """Format a salary period as YYYY-MM."""
    if not 1 <= month <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month}")
    return f"{year:04d}-{month:02d}"


def parse_period(value: str) -> tuple[int, int]:
    """Parse a YYYY-MM period into (year, month)."""
    match = _PERIOD_RE.match(value or "")
    if match is None:
        raise ValidationError(f"Deduct month must be in YYYY-MM format, got {value!r}")
    return int(match.group(1)), int(match.group(2))


def deductible_ceiling(gross: Decimal, deductions: Decimal) -> Decimal:
    """Largest amount of advances a salary may recoup."""
    return max(ZERO, to_money(gross - deductions))


def allocate_advances(ceiling: Decimal, advances: Iterable[AdvanceBalance]) -> Allocation:
    """Greedily consume advances in the given order up to ``ceiling``.

    Callers pass advances oldest first. Advances with no balance are
    skipped; consumption stops as soon as the ceiling is exhausted.
    """
    allocation = Allocation(ceiling=to_money(ceiling))
    remaining_ceiling = allocation.ceiling

    for advance in advances:
        if remaining_ceiling <= ZERO:
            break
        balance = to_money(advance.remaining_balance)
        if balance <= ZERO:
            continue

        deduct_amount = min(balance, remaining_ceiling)
        remaining_ceiling -= deduct_amount
        allocation.deductions.append(
            AdvanceDeduction(
                advance_id=advance.advance_id,
                amount_deducted=deduct_amount,
                remaining_after=balance - deduct_amount,
            )
        )

    return allocation


def compute_net_payable(
    basic_salary: Decimal,
    bonus: Decimal,
    deductions: Decimal,
    advance: Decimal,
) -> Decimal:
    """basic + bonus - deductions - advance, unclamped."""
    return to_money(basic_salary + bonus - deductions - advance)
