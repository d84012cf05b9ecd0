"""
assets.py - In-memory asset collaborators

Reference implementations of the two external services the engine consumes:

    InMemoryStableToken  - fungible stable asset (StableAssetService)
    InMemoryCustody      - base-asset value transfer (BaseAssetCustody)

Both keep integer balances per account id and raise AssetTransferError
subclasses instead of returning False, so a failing transfer always
propagates to the engine and rolls its operation back.
"""

from __future__ import annotations
from collections import defaultdict
import logging
from typing import Dict, Tuple

from .core import (
    ENGINE_WALLET,
    AllowanceInsufficient, TransferFailed,
    require_amount,
)


logger = logging.getLogger(__name__)


class InMemoryStableToken:
    """
    Minimal fungible token with approvals and a faucet.

    Implements the StableAssetService protocol plus approve/allowance for
    transfer_from, and faucet() to mint test or reserve balances.

    Example:
        token = InMemoryStableToken()
        token.faucet("collateralx", 1000 * 10**18)
        token.transfer("collateralx", "alice", 100 * 10**18)
        token.balance_of("alice")  # 100 * 10**18
    """

    def __init__(self, symbol: str = "MOCK", name: str = "MockCoin") -> None:
        if not symbol or not symbol.strip():
            raise ValueError("Token symbol cannot be empty")
        self.symbol = symbol
        self.name = name
        self._balances: Dict[str, int] = defaultdict(int)
        self._allowances: Dict[Tuple[str, str], int] = defaultdict(int)
        self._total_supply = 0

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def faucet(self, to: str, amount: int) -> None:
        """Mint amount to an account."""
        require_amount("amount", amount)
        self._balances[to] += amount
        self._total_supply += amount
        logger.debug("%s faucet: %d to %s", self.symbol, amount, to)

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """Set spender's allowance over owner's balance (replaces any previous value)."""
        require_amount("amount", amount, allow_zero=True)
        self._allowances[(owner, spender)] = amount
        return True

    def _move(self, source: str, dest: str, amount: int) -> None:
        held = self._balances.get(source, 0)
        if amount > held:
            raise TransferFailed(
                f"{self.symbol} transfer of {amount} from {source} failed: balance {held}"
            )
        if source == dest or amount == 0:
            return
        self._balances[source] = held - amount
        self._balances[dest] += amount

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        """
        Move amount from sender to to.

        Raises:
            TransferFailed: If sender's balance is below amount.
        """
        require_amount("amount", amount, allow_zero=True)
        self._move(sender, to, amount)
        logger.debug("%s transfer: %d %s -> %s", self.symbol, amount, sender, to)
        return True

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        """
        Move amount from owner to to on spender's allowance.

        The allowance is checked before the balance, and is only consumed
        when the move succeeds.

        Raises:
            AllowanceInsufficient: If spender's allowance over owner is below amount.
            TransferFailed: If owner's balance is below amount.
        """
        require_amount("amount", amount, allow_zero=True)
        allowed = self.allowance(owner, spender)
        if amount > allowed:
            raise AllowanceInsufficient(
                f"{self.symbol} allowance of {spender} over {owner} is {allowed}, need {amount}"
            )
        self._move(owner, to, amount)
        self._allowances[(owner, spender)] = allowed - amount
        logger.debug("%s transfer_from by %s: %d %s -> %s", self.symbol, spender, amount, owner, to)
        return True

    def __repr__(self) -> str:
        return f"InMemoryStableToken({self.symbol}, supply={self._total_supply})"


class InMemoryCustody:
    """
    Base-asset balances with a vault account that holds deposited collateral.

    Implements the BaseAssetCustody protocol. fund() seeds an account's
    native balance, the way a chain would hold a user's ether.

    Example:
        custody = InMemoryCustody()
        custody.fund("alice", 10**18)
        custody.receive("alice", 10**18)
        custody.balance_of("collateralx")  # 10**18
    """

    def __init__(self, vault: str = ENGINE_WALLET) -> None:
        if not vault or not vault.strip():
            raise ValueError("Custody vault cannot be empty")
        self.vault = vault
        self._balances: Dict[str, int] = defaultdict(int)

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def fund(self, account: str, amount: int) -> None:
        """Credit native balance to an account from outside the system."""
        require_amount("amount", amount)
        self._balances[account] += amount

    def _move(self, source: str, dest: str, amount: int) -> None:
        held = self._balances.get(source, 0)
        if amount > held:
            raise TransferFailed(f"Value transfer of {amount} from {source} failed: balance {held}")
        self._balances[source] = held - amount
        self._balances[dest] += amount

    def receive(self, owner: str, amount: int) -> None:
        """
        Take amount from owner into the vault.

        Raises:
            TransferFailed: If owner's balance is below amount.
        """
        require_amount("amount", amount)
        self._move(owner, self.vault, amount)
        logger.debug("custody receive: %d from %s", amount, owner)

    def release(self, owner: str, amount: int) -> None:
        """
        Pay amount from the vault back to owner.

        Raises:
            TransferFailed: If the vault holds less than amount.
        """
        require_amount("amount", amount)
        self._move(self.vault, owner, amount)
        logger.debug("custody release: %d to %s", amount, owner)

    def __repr__(self) -> str:
        return f"InMemoryCustody(vault={self.vault}, held={self.balance_of(self.vault)})"
