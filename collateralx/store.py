"""
store.py - Per-account collateral and loan storage

LedgerStore is the only object that holds lending state. It maps owner ids to
account records and enforces the storage-level invariants:

    - collateral >= 0
    - total_loan_amount == sum of outstanding loan principal
    - loan indices are append-only and never reused

It knows nothing about prices, ratios or interest; those live in the engine
and in calculations.py.

Thread Safety:
    Not thread-safe. Callers serialize access (one operation at a time).
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from .core import (
    Account, Loan,
    InsufficientCollateral, InvalidLoanIndex, OverRepayment,
    require_amount,
)


@dataclass(slots=True)
class _AccountRecord:
    """Mutable storage record behind an Account snapshot."""
    collateral: int = 0
    total_loan_amount: int = 0
    loans: List[Loan] = field(default_factory=list)

    def copy(self) -> _AccountRecord:
        # Loans are frozen, a shallow list copy is a full copy
        return _AccountRecord(self.collateral, self.total_loan_amount, list(self.loans))


class LedgerStore:
    """
    In-memory ledger of collateral balances and loan records.

    Accounts exist implicitly: reading an untouched owner returns a zero
    account and does not create a record.

    Example:
        store = LedgerStore()
        store.credit_collateral("alice", 10**18)
        index = store.append_loan("alice", 100 * 10**18, datetime(2025, 1, 1))
        store.get_account("alice").total_loan_amount  # 100 * 10**18
    """

    def __init__(self) -> None:
        self._records: Dict[str, _AccountRecord] = {}

    # ========================================================================
    # READS
    # ========================================================================

    def get_account(self, owner: str) -> Account:
        """Immutable snapshot of owner's account (zero account if untouched)."""
        record = self._records.get(owner)
        if record is None:
            return Account(owner=owner)
        return Account(
            owner=owner,
            collateral=record.collateral,
            total_loan_amount=record.total_loan_amount,
            loans=tuple(record.loans),
        )

    def get_loan(self, owner: str, loan_index: int) -> Loan:
        """
        Return one loan record.

        Raises:
            InvalidLoanIndex: If loan_index is out of range.
        """
        record = self._records.get(owner)
        loans = record.loans if record is not None else []
        if isinstance(loan_index, bool) or not isinstance(loan_index, int) \
                or loan_index < 0 or loan_index >= len(loans):
            raise InvalidLoanIndex(f"Loan index {loan_index!r} out of range for {owner}")
        return loans[loan_index]

    def owners(self) -> List[str]:
        """Owners with a storage record, sorted for deterministic iteration."""
        return sorted(self._records.keys())

    def total_collateral(self) -> int:
        return sum(self._records[o].collateral for o in self.owners())

    def total_debt(self) -> int:
        return sum(self._records[o].total_loan_amount for o in self.owners())

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Check storage invariants across every account.

        Returns:
            Dict with keys:
            - 'valid': bool - True if no invariant is violated
            - 'violations': List[Dict] - owner, invariant, expected, actual

        Example:
            result = store.verify_invariants()
            assert result['valid'], result['violations']
        """
        violations = []
        for owner in self.owners():
            record = self._records[owner]
            if record.collateral < 0:
                violations.append({
                    'owner': owner,
                    'invariant': 'collateral >= 0',
                    'expected': 0,
                    'actual': record.collateral,
                })
            outstanding = sum(loan.principal for loan in record.loans)
            if record.total_loan_amount != outstanding:
                violations.append({
                    'owner': owner,
                    'invariant': 'total_loan_amount == sum(principal)',
                    'expected': outstanding,
                    'actual': record.total_loan_amount,
                })
        return {
            'valid': len(violations) == 0,
            'violations': violations,
        }

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def _record(self, owner: str) -> _AccountRecord:
        record = self._records.get(owner)
        if record is None:
            record = _AccountRecord()
            self._records[owner] = record
        return record

    def credit_collateral(self, owner: str, amount: int) -> None:
        """
        Increase owner's collateral.

        Raises:
            ValueError: If amount is not a positive integer.
        """
        require_amount("amount", amount)
        self._record(owner).collateral += amount

    def debit_collateral(self, owner: str, amount: int) -> None:
        """
        Decrease owner's collateral.

        Raises:
            ValueError: If amount is not a positive integer.
            InsufficientCollateral: If amount exceeds the collateral held.
        """
        require_amount("amount", amount)
        record = self._records.get(owner)
        held = record.collateral if record is not None else 0
        if amount > held:
            raise InsufficientCollateral(
                f"Collateral is not enough. {owner} holds {held}, cannot debit {amount}"
            )
        record.collateral -= amount

    def append_loan(self, owner: str, principal: int, timestamp: datetime) -> int:
        """
        Record a new loan and add its principal to the account's debt.

        Returns:
            The new loan's index.

        Raises:
            ValueError: If principal is not a positive integer.
        """
        require_amount("principal", principal)
        record = self._record(owner)
        record.loans.append(Loan(principal=principal, timestamp=timestamp, original_principal=principal))
        record.total_loan_amount += principal
        return len(record.loans) - 1

    def reduce_loan(
        self,
        owner: str,
        loan_index: int,
        repaid_principal: int,
        checkpoint: Optional[datetime] = None,
    ) -> Loan:
        """
        Pay down a loan's principal.

        Args:
            owner: Account owner
            loan_index: Loan to reduce
            repaid_principal: Principal being repaid (interest is not stored)
            checkpoint: If given and the loan stays open, the loan's accrual
                        timestamp moves here

        Returns:
            The updated Loan.

        Raises:
            ValueError: If repaid_principal is not a positive integer.
            InvalidLoanIndex: If loan_index is out of range.
            OverRepayment: If repaid_principal exceeds the outstanding principal.
        """
        require_amount("repaid_principal", repaid_principal)
        loan = self.get_loan(owner, loan_index)
        if repaid_principal > loan.principal:
            raise OverRepayment(
                f"Loan {loan_index} of {owner} has {loan.principal} outstanding, "
                f"cannot repay {repaid_principal}"
            )

        remaining = loan.principal - repaid_principal
        if remaining > 0 and checkpoint is not None:
            updated = replace(loan, principal=remaining, timestamp=checkpoint)
        else:
            updated = replace(loan, principal=remaining)

        record = self._records[owner]
        record.loans[loan_index] = updated
        record.total_loan_amount -= repaid_principal
        return updated

    # ========================================================================
    # ATOMICITY
    # ========================================================================

    @contextmanager
    def transaction(self, owner: str) -> Iterator[None]:
        """
        Run a block of mutations on owner's account all-or-nothing.

        The owner's record is snapshotted on entry. If the block raises, the
        record is restored (or removed, if it did not exist) and the exception
        propagates unchanged.

        Example:
            with store.transaction("alice"):
                store.append_loan("alice", amount, now)
                token.transfer(engine, "alice", amount)  # may raise
        """
        existing = self._records.get(owner)
        snapshot = existing.copy() if existing is not None else None
        try:
            yield
        except BaseException:
            if snapshot is None:
                self._records.pop(owner, None)
            else:
                self._records[owner] = snapshot
            raise

    def clone(self) -> LedgerStore:
        """Fully independent copy of this store."""
        cloned = LedgerStore.__new__(LedgerStore)
        cloned._records = {owner: record.copy() for owner, record in self._records.items()}
        return cloned

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"LedgerStore({len(self._records)} accounts, collateral={self.total_collateral()}, debt={self.total_debt()})"
