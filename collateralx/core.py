"""
Core types for the collateralized lending ledger.

This module provides the foundational data structures and protocols:
1. Constants: basis points, seconds per year, reserved wallet ids
2. Exceptions: LedgerError and domain-specific error types
3. Immutable data structures: Loan, Account, AccountStateChange, Operation
4. Protocols: StableAssetService and BaseAssetCustody collaborators
5. Unit helpers: parse_units / format_units for minor-unit conversion

All amounts are integers in minor units (wei-equivalent). Nothing in this
module mutates ledger state.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable


# ============================================================================
# CONSTANTS
# ============================================================================

# Denominator for rates and ratios expressed in basis points.
BPS = 10_000

# 365 days, the year length used for simple interest.
SECONDS_PER_YEAR = 365 * 24 * 60 * 60

# Wallet holding the engine's stable reserves and custodied collateral.
ENGINE_WALLET = "collateralx"

# Decimals of both the base asset and the stable asset (ether-style).
DEFAULT_DECIMALS = 18

# Precision for unit conversions, wide enough for 18-decimal amounts
# in the hundreds of billions.
_UNITS_PRECISION = 60


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all lending ledger errors."""
    pass


class InsufficientCollateral(LedgerError):
    """Raised when a borrow or withdrawal would break the solvency rule."""
    pass


class InvalidLoanIndex(LedgerError):
    """Raised when a loan index is out of range, closed, or repeated."""
    pass


class OverRepayment(LedgerError):
    """Raised when a repayment would push a loan's principal below zero."""
    pass


class AssetTransferError(LedgerError):
    """Base exception for failures reported by an asset collaborator."""
    pass


class TransferFailed(AssetTransferError):
    """Raised when a value transfer is rejected (e.g. insufficient balance)."""
    pass


class AllowanceInsufficient(AssetTransferError):
    """Raised when transfer_from exceeds the spender's approved allowance."""
    pass


# ============================================================================
# ENUMS
# ============================================================================

class OperationKind(Enum):
    """Classification of a mutating engine operation."""
    DEPOSIT = "deposit"
    BORROW = "borrow"
    REPAY = "repay"
    PARTIAL_REPAY = "partial_repay"
    WITHDRAW = "withdraw"


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def require_amount(name: str, amount: Any, allow_zero: bool = False) -> int:
    """
    Validate an integer minor-unit amount.

    Raises:
        ValueError: If amount is not an int (bools are rejected), is negative,
                    or is zero while allow_zero is False.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"{name} must be an integer amount, got {type(amount).__name__}")
    if amount < 0:
        raise ValueError(f"{name} cannot be negative, got {amount}")
    if amount == 0 and not allow_zero:
        raise ValueError(f"{name} must be positive, got {amount}")
    return amount


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Loan:
    """
    A single borrowing event.

    Attributes:
        principal: Outstanding principal in minor units (0 once closed).
        timestamp: Interest accrual checkpoint. Set at creation and moved
                   forward by partial repayments.
        original_principal: Amount borrowed at creation, never changes.
    """
    principal: int
    timestamp: datetime
    original_principal: int

    def __post_init__(self):
        require_amount("principal", self.principal, allow_zero=True)
        require_amount("original_principal", self.original_principal)
        if self.principal > self.original_principal:
            raise ValueError(
                f"principal ({self.principal}) cannot exceed "
                f"original_principal ({self.original_principal})"
            )

    @property
    def is_open(self) -> bool:
        return self.principal > 0

    @property
    def is_closed(self) -> bool:
        return self.principal == 0

    def __repr__(self) -> str:
        status = "open" if self.is_open else "closed"
        return f"Loan({self.principal}/{self.original_principal} @ {self.timestamp.isoformat()}, {status})"


@dataclass(frozen=True, slots=True)
class Account:
    """
    Immutable snapshot of one owner's position.

    Returned by LedgerStore.get_account(); mutating the store never changes
    a snapshot already handed out.

    Attributes:
        owner: Opaque owner identifier.
        collateral: Base asset held as collateral, in minor units.
        total_loan_amount: Sum of outstanding principal across all loans.
        loans: Every loan ever taken, indexed by loan id. Closed loans keep
               their slot with principal 0.
    """
    owner: str
    collateral: int = 0
    total_loan_amount: int = 0
    loans: Tuple[Loan, ...] = ()

    @property
    def outstanding_principal(self) -> int:
        """Sum of principal over open loans, recomputed from the loan list."""
        return sum(loan.principal for loan in self.loans)

    def open_loan_indices(self) -> Tuple[int, ...]:
        return tuple(i for i, loan in enumerate(self.loans) if loan.is_open)

    def is_empty(self) -> bool:
        """True for an account that has never been touched (or is fully unwound)."""
        return self.collateral == 0 and self.total_loan_amount == 0 and not self.loans


@dataclass(frozen=True, slots=True)
class AccountStateChange:
    """
    Before/after snapshots of an account for one applied operation.

    Enables audit queries (changed_fields) without storing diffs.
    """
    owner: str
    old_state: Account
    new_state: Account

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """
        Compute fields that differ between old and new state.

        Returns:
            Dict mapping 'collateral', 'total_loan_amount' and 'loan[i]' keys to
            (old_value, new_value) tuples. Loans only present in one side are
            reported with None on the other.
        """
        changes: Dict[str, Tuple[Any, Any]] = {}
        old, new = self.old_state, self.new_state
        if old.collateral != new.collateral:
            changes['collateral'] = (old.collateral, new.collateral)
        if old.total_loan_amount != new.total_loan_amount:
            changes['total_loan_amount'] = (old.total_loan_amount, new.total_loan_amount)
        for i in range(max(len(old.loans), len(new.loans))):
            old_loan = old.loans[i] if i < len(old.loans) else None
            new_loan = new.loans[i] if i < len(new.loans) else None
            if old_loan != new_loan:
                changes[f'loan[{i}]'] = (old_loan, new_loan)
        return changes


@dataclass(frozen=True, slots=True)
class Operation:
    """
    An applied, immutable record of one engine operation.

    Attributes:
        sequence_number: Monotonic position in the engine's operation log.
        kind: Which operation was applied.
        owner: Account the operation acted on.
        amount: Value moved by the operation (collateral, borrowed, or paid).
        timestamp: Engine logical time at execution.
        change: Before/after account snapshots.
        loan_indices: Loans touched by borrow/repay operations.
    """
    sequence_number: int
    kind: OperationKind
    owner: str
    amount: int
    timestamp: datetime
    change: AccountStateChange
    loan_indices: Tuple[int, ...] = ()

    def __repr__(self) -> str:
        w = 80
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            f"┌{bar}┐",
            f"│{pad(f' Operation #{self.sequence_number}: {self.kind.value}')}│",
            f"├{bar}┤",
            f"│{pad('   owner     : ' + self.owner)}│",
            f"│{pad('   amount    : ' + str(self.amount))}│",
            f"│{pad('   timestamp : ' + self.timestamp.isoformat())}│",
        ]
        if self.loan_indices:
            lines.append(f"│{pad('   loans     : ' + str(list(self.loan_indices)))}│")
        changed = self.change.changed_fields()
        if changed:
            lines.append(f"├{bar}┤")
            for field_name, (old_val, new_val) in changed.items():
                lines.append(f"│{pad(f'   {field_name}: {old_val!r} → {new_val!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class StableAssetService(Protocol):
    """
    Fungible stable-asset collaborator consumed by the engine.

    Implementations raise AssetTransferError subclasses on failure rather than
    returning False; the boolean return mirrors the token interface.
    """

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        """Move amount from sender to to."""
        ...

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        """Move amount from owner to to, consuming spender's allowance."""
        ...

    def balance_of(self, account: str) -> int:
        """Return the stable balance of account (0 if unknown)."""
        ...


@runtime_checkable
class BaseAssetCustody(Protocol):
    """Base-asset value transfer primitive consumed by the engine."""

    def receive(self, owner: str, amount: int) -> None:
        """Take amount of base asset from owner into custody."""
        ...

    def release(self, owner: str, amount: int) -> None:
        """Return amount of custodied base asset to owner."""
        ...

    def balance_of(self, account: str) -> int:
        """Return the base-asset balance of account (0 if unknown)."""
        ...


# ============================================================================
# UNIT HELPERS
# ============================================================================

def _normalize_decimal(d: Decimal) -> str:
    """
    Normalize a Decimal to a canonical fixed-point string.

    Decimal("1.50") becomes "1.5", Decimal("100.0") becomes "100".
    """
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


def parse_units(value: Any, decimals: int = DEFAULT_DECIMALS) -> int:
    """
    Convert a human-readable amount into integer minor units.

    Args:
        value: Amount as str, int or Decimal (floats go through str()).
        decimals: Number of decimal places of the asset.

    Returns:
        The amount scaled by 10**decimals.

    Raises:
        ValueError: If value is not a number or has more fractional digits
                    than the asset supports.

    Example:
        parse_units("0.5")  # 500000000000000000
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Cannot parse amount {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")

    with localcontext() as ctx:
        ctx.prec = _UNITS_PRECISION
        scaled = amount.scaleb(decimals)
        if scaled != scaled.to_integral_value(rounding=ROUND_DOWN):
            raise ValueError(f"{value!r} has more than {decimals} decimal places")
        return int(scaled)


def format_units(amount: int, decimals: int = DEFAULT_DECIMALS) -> str:
    """
    Render integer minor units as a normalized decimal string.

    Example:
        format_units(110 * 10**18)  # "110"
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"amount must be an integer, got {type(amount).__name__}")
    with localcontext() as ctx:
        ctx.prec = _UNITS_PRECISION
        return _normalize_decimal(Decimal(amount).scaleb(-decimals))
