"""
collateralx - Collateralized Lending Ledger

Users deposit a base asset as collateral, borrow a stable asset against it,
accrue simple interest, and repay or withdraw subject to a solvency rule.

Usage:
    from datetime import timedelta
    from collateralx import (
        LendingEngine, LedgerStore, InMemoryStableToken, InMemoryCustody,
        parse_units,
    )

    token = InMemoryStableToken()
    custody = InMemoryCustody()
    engine = LendingEngine(LedgerStore(), token, custody)

    # Fund the engine's reserves and the user's native balance
    token.faucet(engine.wallet, parse_units("1000"))
    custody.fund("alice", parse_units("1"))

    engine.deposit_collateral("alice", parse_units("1"))
    index = engine.borrow("alice", parse_units("100"))

    # One year later: principal + 10% interest
    engine.advance_time(engine.current_time + timedelta(days=365))
    owed = engine.calculate_repayment_amount("alice", [index])
    token.approve("alice", engine.wallet, owed)
    engine.repay("alice", [index])
"""

# Core types
from .core import (
    Loan,
    Account,
    AccountStateChange,
    Operation,
    OperationKind,
    StableAssetService,
    BaseAssetCustody,
    LedgerError,
    InsufficientCollateral,
    InvalidLoanIndex,
    OverRepayment,
    AssetTransferError,
    TransferFailed,
    AllowanceInsufficient,
    BPS,
    SECONDS_PER_YEAR,
    ENGINE_WALLET,
    DEFAULT_DECIMALS,
    parse_units,
    format_units,
)

# Configuration
from .config import (
    LendingConfig,
    DEFAULT_COLLATERALIZATION_RATIO_BPS,
    DEFAULT_ANNUAL_INTEREST_RATE_BPS,
    DEFAULT_COLLATERAL_PRICE,
)

# Pure calculations
from .calculations import (
    elapsed_seconds,
    calculate_interest,
    calculate_loan_interest,
    calculate_repayment_amount,
    calculate_max_borrowable,
    calculate_required_collateral,
    calculate_max_withdrawable,
    collateral_value,
    is_solvent,
    validate_loan_indices,
)

# Storage and engine
from .store import LedgerStore
from .engine import LendingEngine, COLLATERAL_NOT_ENOUGH

# Collaborators
from .assets import InMemoryStableToken, InMemoryCustody

__all__ = [
    # Core
    'Loan', 'Account', 'AccountStateChange', 'Operation', 'OperationKind',
    'StableAssetService', 'BaseAssetCustody',
    'LedgerError', 'InsufficientCollateral', 'InvalidLoanIndex', 'OverRepayment',
    'AssetTransferError', 'TransferFailed', 'AllowanceInsufficient',
    'BPS', 'SECONDS_PER_YEAR', 'ENGINE_WALLET', 'DEFAULT_DECIMALS',
    'parse_units', 'format_units',
    # Configuration
    'LendingConfig', 'DEFAULT_COLLATERALIZATION_RATIO_BPS',
    'DEFAULT_ANNUAL_INTEREST_RATE_BPS', 'DEFAULT_COLLATERAL_PRICE',
    # Calculations
    'elapsed_seconds', 'calculate_interest', 'calculate_loan_interest',
    'calculate_repayment_amount', 'calculate_max_borrowable',
    'calculate_required_collateral', 'calculate_max_withdrawable',
    'collateral_value', 'is_solvent', 'validate_loan_indices',
    # Storage and engine
    'LedgerStore', 'LendingEngine', 'COLLATERAL_NOT_ENOUGH',
    # Collaborators
    'InMemoryStableToken', 'InMemoryCustody',
]

__version__ = '1.0.0'
