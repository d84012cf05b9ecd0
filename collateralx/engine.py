"""
engine.py - Collateralized Lending Engine

The LendingEngine implements deposit, borrow, repay and withdraw on top of a
LedgerStore. It is the only module that decides whether an account may take on
debt or release collateral.

Key responsibilities:
    - Applies the solvency rule on every mutation that could weaken it
      (borrow, withdraw_collateral)
    - Computes repayment amounts with deterministic integer simple interest
    - Moves value through the stable-asset and custody collaborators
    - Executes every operation atomically: ledger changes are made inside a
      store transaction and rolled back if any later step (including a
      collaborator call) raises
    - Records every applied operation in an append-only operation log
"""

from __future__ import annotations
from datetime import datetime
import logging
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

from . import calculations
from .config import LendingConfig
from .core import (
    Account, AccountStateChange, Operation, OperationKind,
    BaseAssetCustody, StableAssetService,
    ENGINE_WALLET,
    LedgerError, InsufficientCollateral, TransferFailed,
    require_amount,
)
from .store import LedgerStore


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Revert message of a borrow or withdrawal the collateral cannot support.
COLLATERAL_NOT_ENOUGH = "Collateral is not enough."


class LendingEngine:
    """
    Lending operations over a LedgerStore, validated against a solvency rule.

    Design Principles:
        - All-or-nothing: a rejected operation leaves the store exactly as it
          was before the call. Errors propagate to the caller, never retried.
        - Integer arithmetic: amounts, rates and elapsed time are ints, so
          repayment amounts are reproducible to the last minor unit.
        - Explicit time: the engine keeps a logical clock that only moves
          forward via advance_time().

    Thread Safety:
        Not thread-safe. Callers serialize operations on one engine.

    Example:
        token = InMemoryStableToken()
        custody = InMemoryCustody()
        engine = LendingEngine(LedgerStore(), token, custody)
        token.faucet(engine.wallet, parse_units("1000"))
        custody.fund("alice", parse_units("1"))

        engine.deposit_collateral("alice", parse_units("1"))
        index = engine.borrow("alice", parse_units("100"))
        engine.advance_time(engine.current_time + timedelta(days=365))
        owed = engine.calculate_repayment_amount("alice", [index])
    """

    def __init__(
        self,
        store: LedgerStore,
        token: StableAssetService,
        custody: BaseAssetCustody,
        config: Optional[LendingConfig] = None,
        wallet: str = ENGINE_WALLET,
        initial_time: Optional[datetime] = None,
        verbose: bool = False,
    ):
        """
        Create an engine.

        Args:
            store: Ledger of accounts the engine operates on
            token: Stable asset service used for loan payouts and repayments
            custody: Base asset custody used for collateral in and out
            config: Lending terms (default: LendingConfig())
            wallet: Account id holding the engine's stable reserves
            initial_time: Starting logical time (default: 1970-01-01)
            verbose: Print each applied operation (default: False)
        """
        if not wallet or not wallet.strip():
            raise ValueError("Engine wallet cannot be empty")
        self.store = store
        self.token = token
        self.custody = custody
        self.config = config or LendingConfig()
        self.wallet = wallet
        self.verbose = verbose
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self._operations: List[Operation] = []

    # ========================================================================
    # QUERIES (read-only)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the engine."""
        return self._current_time

    @property
    def operations(self) -> Tuple[Operation, ...]:
        """Applied operations, oldest first."""
        return tuple(self._operations)

    def get_loan_account(self, owner: str) -> Account:
        """Snapshot of owner's collateral, debt and loans."""
        return self.store.get_account(owner)

    def calculate_repayment_amount(self, owner: str, loan_indices: Iterable[int]) -> int:
        """
        Principal plus interest owed now on the given loans.

        Args:
            owner: Account owner
            loan_indices: Open loans to price

        Returns:
            Sum over loans of principal + principal * rate * elapsed / year.
            0 for an empty list.

        Raises:
            InvalidLoanIndex: If an index is out of range, closed, or repeated.
        """
        account = self.store.get_account(owner)
        return calculations.calculate_repayment_amount(
            account.loans, loan_indices, self._current_time, self.config
        )

    def max_borrowable(self, owner: str) -> int:
        """Total debt owner's current collateral supports."""
        account = self.store.get_account(owner)
        return calculations.calculate_max_borrowable(account.collateral, self.config)

    def available_to_borrow(self, owner: str) -> int:
        """Amount owner can still borrow before hitting the solvency limit."""
        account = self.store.get_account(owner)
        return max(0, self.max_borrowable(owner) - account.total_loan_amount)

    def max_withdrawable(self, owner: str) -> int:
        """Collateral owner can withdraw without breaking solvency."""
        account = self.store.get_account(owner)
        return calculations.calculate_max_withdrawable(
            account.collateral, account.total_loan_amount, self.config
        )

    def reserves(self) -> int:
        """Stable asset the engine holds for new loans."""
        return self.token.balance_of(self.wallet)

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the engine's logical clock.

        Raises:
            ValueError: If new_time is before the current time, or mixes
                        timezone-aware and naive datetimes with it
        """
        if (new_time.tzinfo is None) != (self._current_time.tzinfo is None):
            raise ValueError(
                f"Cannot mix naive and timezone-aware times: {new_time} vs {self._current_time}"
            )
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # OPERATIONS (mutating, atomic)
    # ========================================================================

    def deposit_collateral(self, owner: str, amount: int) -> None:
        """
        Move base asset from owner into custody and credit it as collateral.

        A zero amount is a no-op and is not logged.

        Raises:
            ValueError: If amount is negative or not an integer.
            TransferFailed: If custody cannot take amount from owner.
        """
        require_amount("amount", amount, allow_zero=True)
        if amount == 0:
            return

        def action() -> None:
            self.store.credit_collateral(owner, amount)
            self.custody.receive(owner, amount)

        self._execute(OperationKind.DEPOSIT, owner, amount, (), action)

    def borrow(self, owner: str, borrow_amount: int) -> int:
        """
        Open a loan and pay borrow_amount of stable asset to owner.

        Returns:
            Index of the new loan.

        Raises:
            ValueError: If borrow_amount is not a positive integer.
            InsufficientCollateral: If total_loan_amount + borrow_amount exceeds
                                    what the collateral supports.
            TransferFailed: If the engine's reserves cannot cover the payout,
                            or the token service refuses it.
        """
        require_amount("borrow_amount", borrow_amount)

        def action() -> int:
            account = self.store.get_account(owner)
            new_debt = account.total_loan_amount + borrow_amount
            if not calculations.is_solvent(account.collateral, new_debt, self.config):
                raise InsufficientCollateral(COLLATERAL_NOT_ENOUGH)
            index = self.store.append_loan(owner, borrow_amount, self._current_time)
            if not self.token.transfer(self.wallet, owner, borrow_amount):
                raise TransferFailed(f"Payout of {borrow_amount} to {owner} was refused")
            return index

        return self._execute(
            OperationKind.BORROW, owner, borrow_amount, (), action,
            indices_from_result=True,
        )

    def repay(self, owner: str, loan_indices: Iterable[int]) -> int:
        """
        Repay the given loans in full, principal plus accrued interest.

        Each loan is closed (principal 0); total_loan_amount falls by the
        outstanding principal only. Interest is paid to the engine wallet and
        not recorded in the ledger.

        Returns:
            Amount of stable asset pulled from owner.

        Raises:
            ValueError: If loan_indices is empty.
            InvalidLoanIndex: If an index is out of range, closed, or repeated.
            AllowanceInsufficient: If owner has not approved the engine for the amount.
            TransferFailed: If owner's balance is below the amount, or the
                            token service refuses the transfer.
        """
        indices = tuple(loan_indices)
        if not indices:
            raise ValueError("loan_indices cannot be empty")

        def action() -> int:
            account = self.store.get_account(owner)
            amount = calculations.calculate_repayment_amount(
                account.loans, indices, self._current_time, self.config
            )
            for index in indices:
                self.store.reduce_loan(owner, index, account.loans[index].principal)
            self._collect(owner, amount)
            return amount

        return self._execute(
            OperationKind.REPAY, owner, None, indices, action,
            amount_from_result=True,
        )

    def repay_partial(self, owner: str, loan_index: int, principal_amount: int) -> int:
        """
        Repay part of one loan's principal together with its accrued interest.

        All interest accrued on the outstanding principal up to now is paid,
        then the principal is reduced and the loan's accrual checkpoint moves to
        now. Repaying the whole principal closes the loan like repay().

        Returns:
            Amount of stable asset pulled from owner (principal_amount + interest).

        Raises:
            ValueError: If principal_amount is not a positive integer.
            InvalidLoanIndex: If loan_index is out of range or closed.
            OverRepayment: If principal_amount exceeds the outstanding principal.
            AllowanceInsufficient / TransferFailed: From the token service.
        """
        require_amount("principal_amount", principal_amount)

        def action() -> int:
            account = self.store.get_account(owner)
            calculations.validate_loan_indices(account.loans, [loan_index])
            loan = account.loans[loan_index]
            interest = calculations.calculate_loan_interest(loan, self._current_time, self.config)
            self.store.reduce_loan(owner, loan_index, principal_amount, checkpoint=self._current_time)
            amount = principal_amount + interest
            self._collect(owner, amount)
            return amount

        return self._execute(
            OperationKind.PARTIAL_REPAY, owner, None, (loan_index,), action,
            amount_from_result=True,
        )

    def withdraw_collateral(self, owner: str, withdraw_amount: int) -> None:
        """
        Release collateral back to owner.

        Raises:
            ValueError: If withdraw_amount is not a positive integer.
            InsufficientCollateral: If withdraw_amount exceeds the collateral,
                                    or the remainder would not support the debt.
            TransferFailed: If custody cannot pay out.
        """
        require_amount("withdraw_amount", withdraw_amount)

        def action() -> None:
            account = self.store.get_account(owner)
            if withdraw_amount > account.collateral:
                raise InsufficientCollateral(COLLATERAL_NOT_ENOUGH)
            remaining = account.collateral - withdraw_amount
            if not calculations.is_solvent(remaining, account.total_loan_amount, self.config):
                raise InsufficientCollateral(COLLATERAL_NOT_ENOUGH)
            self.store.debit_collateral(owner, withdraw_amount)
            self.custody.release(owner, withdraw_amount)

        self._execute(OperationKind.WITHDRAW, owner, withdraw_amount, (), action)

    # ========================================================================
    # EXECUTION
    # ========================================================================

    def _collect(self, owner: str, amount: int) -> None:
        """Pull amount of stable asset from owner into the engine wallet."""
        if not self.token.transfer_from(self.wallet, owner, self.wallet, amount):
            raise TransferFailed(f"Collection of {amount} from {owner} was refused")

    def _execute(
        self,
        kind: OperationKind,
        owner: str,
        amount: Optional[int],
        loan_indices: Tuple[int, ...],
        action: Callable[[], T],
        amount_from_result: bool = False,
        indices_from_result: bool = False,
    ) -> T:
        """
        Run action inside a store transaction and log it if it succeeds.

        Ledger errors are logged and re-raised unchanged; the store transaction
        has already restored the account by then.
        """
        before = self.store.get_account(owner)
        try:
            with self.store.transaction(owner):
                result = action()
        except LedgerError as e:
            logger.info("%s rejected for %s: %s", kind.value, owner, e)
            raise

        if amount_from_result:
            amount = result
        if indices_from_result:
            loan_indices = (result,)

        op = Operation(
            sequence_number=len(self._operations),
            kind=kind,
            owner=owner,
            amount=amount,
            timestamp=self._current_time,
            change=AccountStateChange(owner, before, self.store.get_account(owner)),
            loan_indices=loan_indices,
        )
        self._operations.append(op)
        logger.debug(
            "%s applied for %s: amount=%d loans=%s seq=%d",
            kind.value, owner, amount, list(loan_indices), op.sequence_number,
        )
        if self.verbose:
            print(repr(op))
        return result

    def __repr__(self) -> str:
        return (
            f"LendingEngine(wallet={self.wallet}, time={self._current_time.isoformat()}, "
            f"accounts={len(self.store)}, operations={len(self._operations)})"
        )
