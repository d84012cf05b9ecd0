#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Lending Ledger Step by Step

This is a pedagogical demonstration of how collateralized lending works.
Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3: Foundation  - The engine, its collaborators, depositing collateral
  4-5: Borrowing   - The collateral limit and rejected borrows
  6-7: Interest    - Time, accrual and repayment in full or in part
  8:   Withdrawal  - Taking collateral back and the operation log

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
import sys

from collateralx import (
    LendingEngine, LedgerStore, LendingConfig,
    InMemoryStableToken, InMemoryCustody,
    InsufficientCollateral,
    parse_units, format_units,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # Initial funding
    engine_reserves: str = "1000"
    alice_native: str = "10"

    # Scenario amounts
    deposit: str = "1"
    borrow: str = "100"
    too_much: str = "10000"
    partial: str = "40"


CONFIG = DemoConfig()

# Global state for interactive mode
QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def show_account(engine: LendingEngine, owner: str):
    account = engine.get_loan_account(owner)
    print(f"  collateral:        {format_units(account.collateral)}")
    print(f"  total_loan_amount: {format_units(account.total_loan_amount)}")
    for i, loan in enumerate(account.loans):
        print(f"  loan[{i}]:           {format_units(loan.principal)} since {loan.timestamp:%Y-%m-%d}"
              f"{' (closed)' if loan.is_closed else ''}")


# ============================================================================
# STEPS
# ============================================================================

def step_01_engine():
    """Create the engine and its collaborators."""
    step_header(1, "The Engine",
        "See the three pieces: a ledger store, a stable token and base-asset custody.")

    config = LendingConfig.from_env()
    token = InMemoryStableToken()
    custody = InMemoryCustody()
    engine = LendingEngine(
        LedgerStore(), token, custody,
        config=config, initial_time=CONFIG.start_time, verbose=True,
    )

    section_header("Lending terms")
    print(f"  collateralization ratio: {config.collateralization_ratio_bps / 100:.0f}%")
    print(f"  annual interest rate:    {config.annual_interest_rate_bps / 100:.2f}%")
    print(f"  collateral price:        {config.collateral_price}")

    wait_for_enter()
    return engine, token, custody


def step_02_funding(engine, token, custody):
    """Fund reserves and the borrower's native balance."""
    step_header(2, "Funding",
        "The engine lends from its own reserves; alice brings her own base asset.")

    token.faucet(engine.wallet, parse_units(CONFIG.engine_reserves))
    custody.fund("alice", parse_units(CONFIG.alice_native))
    print(f"  engine reserves: {format_units(engine.reserves())} {token.symbol}")
    print(f"  alice native:    {format_units(custody.balance_of('alice'))}")

    wait_for_enter()


def step_03_deposit(engine, token, custody):
    """Deposit collateral."""
    step_header(3, "Deposit Collateral",
        "Collateral moves into custody and is credited to alice's account.")

    engine.deposit_collateral("alice", parse_units(CONFIG.deposit))
    show_account(engine, "alice")

    wait_for_enter()


def step_04_borrow(engine, token, custody):
    """Borrow within the limit."""
    step_header(4, "Borrow",
        "Borrow up to collateral * price / ratio; the loan is paid out from reserves.")

    print(f"  max borrowable: {format_units(engine.max_borrowable('alice'))}")
    engine.borrow("alice", parse_units(CONFIG.borrow))
    show_account(engine, "alice")
    print(f"  alice {token.symbol}: {format_units(token.balance_of('alice'))}")

    wait_for_enter()


def step_05_rejected(engine, token, custody):
    """A borrow the collateral cannot support."""
    step_header(5, "Rejection",
        "A borrow beyond the limit fails and changes nothing.")

    try:
        engine.borrow("alice", parse_units(CONFIG.too_much))
    except InsufficientCollateral as e:
        print(f"  rejected: {e}")
    show_account(engine, "alice")

    wait_for_enter()


def step_06_partial(engine, token, custody):
    """Partial repayment after a year."""
    step_header(6, "Partial Repayment",
        "Pay down principal with all accrued interest; accrual restarts now.")

    engine.advance_time(CONFIG.start_time + timedelta(days=365))
    print(f"  owed after one year: {format_units(engine.calculate_repayment_amount('alice', [0]))}")
    token.faucet("alice", parse_units("100"))
    token.approve("alice", engine.wallet, parse_units("1000"))
    paid = engine.repay_partial("alice", 0, parse_units(CONFIG.partial))
    print(f"  paid: {format_units(paid)}")
    show_account(engine, "alice")

    wait_for_enter()


def step_07_repay(engine, token, custody):
    """Repay in full."""
    step_header(7, "Repay",
        "Close the loan: principal plus interest since the last checkpoint.")

    engine.advance_time(CONFIG.start_time + timedelta(days=730))
    paid = engine.repay("alice", [0])
    print(f"  paid: {format_units(paid)}")
    show_account(engine, "alice")

    wait_for_enter()


def step_08_withdraw(engine, token, custody):
    """Withdraw collateral and review the log."""
    step_header(8, "Withdraw",
        "With no debt left, all collateral can be withdrawn.")

    engine.withdraw_collateral("alice", engine.max_withdrawable("alice"))
    show_account(engine, "alice")

    section_header("Operation log")
    for op in engine.operations:
        amount = format_units(op.amount) if op.amount is not None else "-"
        print(f"  #{op.sequence_number} {op.timestamp:%Y-%m-%d} {op.kind.value:<14} {amount}")

    section_header("Invariants")
    print(f"  {engine.store.verify_invariants()}")


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    engine, token, custody = step_01_engine()
    for step in (step_02_funding, step_03_deposit, step_04_borrow, step_05_rejected,
                 step_06_partial, step_07_repay, step_08_withdraw):
        step(engine, token, custody)


if __name__ == "__main__":
    main()
