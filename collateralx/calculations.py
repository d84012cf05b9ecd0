"""
calculations.py - Pure lending calculations

PURE FUNCTIONS - every input explicit, no store, no engine, no hidden state.

The engine composes these; tests and stress scenarios can call them directly
with hypothetical inputs (a different rate, a lower price) without touching a
ledger.

Key Formulas (integer arithmetic, floor division):
    interest        = principal * rate_bps * elapsed // (BPS * seconds_per_year)
    max_borrowable  = collateral * price * BPS // ratio_bps
    solvent         <=> total_debt * ratio_bps <= collateral * price * BPS
    required        = ceil(total_debt * ratio_bps / (price * BPS))
"""

from __future__ import annotations
from datetime import datetime, timedelta
from typing import Iterable, Sequence, Tuple

from .config import LendingConfig
from .core import BPS, InvalidLoanIndex, Loan


_ONE_SECOND = timedelta(seconds=1)


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """
    Whole seconds from start to end, floored.

    Raises:
        ValueError: If end is before start.
    """
    if end < start:
        raise ValueError(f"end {end} is before start {start}")
    return (end - start) // _ONE_SECOND


def calculate_interest(
    principal: int,
    annual_rate_bps: int,
    elapsed: int,
    seconds_per_year: int,
) -> int:
    """
    Simple (non-compounding) interest accrued over elapsed seconds.

    Rounds down, so interest is never overstated.

    Example:
        # 100 units at 10% for one 365-day year
        calculate_interest(100 * 10**18, 1000, 31_536_000, 31_536_000)  # 10 * 10**18
    """
    if principal <= 0 or annual_rate_bps <= 0 or elapsed <= 0:
        return 0
    return principal * annual_rate_bps * elapsed // (BPS * seconds_per_year)


def calculate_loan_interest(loan: Loan, now: datetime, config: LendingConfig) -> int:
    """Interest accrued on loan from its checkpoint to now."""
    return calculate_interest(
        loan.principal,
        config.annual_interest_rate_bps,
        elapsed_seconds(loan.timestamp, now),
        config.seconds_per_year,
    )


def validate_loan_indices(loans: Sequence[Loan], loan_indices: Iterable[int]) -> Tuple[int, ...]:
    """
    Check that every index names a distinct open loan.

    Returns:
        The indices as a tuple, in the order given.

    Raises:
        InvalidLoanIndex: If an index is not an int, is out of range, names a
                          closed loan, or appears more than once.
    """
    indices = tuple(loan_indices)
    seen = set()
    for index in indices:
        if isinstance(index, bool) or not isinstance(index, int):
            raise InvalidLoanIndex(f"Loan index must be an integer, got {index!r}")
        if index < 0 or index >= len(loans):
            raise InvalidLoanIndex(f"Loan index {index} out of range (account has {len(loans)} loans)")
        if loans[index].is_closed:
            raise InvalidLoanIndex(f"Loan {index} is already repaid")
        if index in seen:
            raise InvalidLoanIndex(f"Loan index {index} given more than once")
        seen.add(index)
    return indices


def calculate_repayment_amount(
    loans: Sequence[Loan],
    loan_indices: Iterable[int],
    now: datetime,
    config: LendingConfig,
) -> int:
    """
    Principal plus accrued interest owed on the named loans at time now.

    Returns 0 for an empty index list.

    Raises:
        InvalidLoanIndex: See validate_loan_indices().
    """
    total = 0
    for index in validate_loan_indices(loans, loan_indices):
        loan = loans[index]
        total += loan.principal + calculate_loan_interest(loan, now, config)
    return total


def collateral_value(collateral: int, config: LendingConfig) -> int:
    """Collateral valued in stable minor units at the configured price."""
    return collateral * config.collateral_price


def calculate_max_borrowable(collateral: int, config: LendingConfig) -> int:
    """Largest total debt the given collateral supports under the ratio."""
    return collateral_value(collateral, config) * BPS // config.collateralization_ratio_bps


def is_solvent(collateral: int, total_debt: int, config: LendingConfig) -> bool:
    """
    Check the solvency rule without rounding.

    Equivalent to total_debt <= calculate_max_borrowable(collateral, config)
    for integer debt.
    """
    return total_debt * config.collateralization_ratio_bps <= collateral_value(collateral, config) * BPS


def calculate_required_collateral(total_debt: int, config: LendingConfig) -> int:
    """Smallest collateral amount that keeps total_debt solvent (rounded up)."""
    if total_debt <= 0:
        return 0
    numerator = total_debt * config.collateralization_ratio_bps
    denominator = config.collateral_price * BPS
    return -(-numerator // denominator)


def calculate_max_withdrawable(collateral: int, total_debt: int, config: LendingConfig) -> int:
    """Collateral that can leave the account without breaking solvency."""
    return max(0, collateral - calculate_required_collateral(total_debt, config))
