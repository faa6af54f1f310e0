"""Pure salary arithmetic."""

from bizledger.calculators.allocator import (
    allocate_advances,
    compute_net_payable,
    deductible_ceiling,
    parse_period,
    period_key,
)
from bizledger.calculators.types import AdvanceBalance, AdvanceDeduction, Allocation, to_money

__all__ = [
    "AdvanceBalance",
    "AdvanceDeduction",
    "Allocation",
    "allocate_advances",
    "compute_net_payable",
    "deductible_ceiling",
    "parse_period",
    "period_key",
    "to_money",
]
