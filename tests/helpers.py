"""
helpers.py - Test helpers for building engines

Hypothesis tests cannot share function-scoped fixtures between examples, so
they build a fresh engine per example with make_engine().
"""

from datetime import datetime, timedelta

from hypothesis import strategies as st

from collateralx import (
    LendingEngine, LedgerStore, LendingConfig,
    InMemoryStableToken, InMemoryCustody,
    parse_units,
)


START = datetime(2025, 1, 1)
ONE_YEAR = timedelta(days=365)

# One whole unit of either asset (18 decimals)
ONE = parse_units("1")


def make_engine(
    config: LendingConfig = None,
    reserves: int = 1000 * ONE,
    users: dict = None,
    initial_time: datetime = START,
):
    """
    Build an engine with funded reserves and user native balances.

    Returns:
        (engine, token, custody)
    """
    token = InMemoryStableToken()
    custody = InMemoryCustody()
    engine = LendingEngine(
        LedgerStore(), token, custody,
        config=config, initial_time=initial_time,
    )
    if reserves:
        token.faucet(engine.wallet, reserves)
    for user, amount in (users or {}).items():
        custody.fund(user, amount)
    return engine, token, custody


def assert_store_consistent(engine: LendingEngine) -> None:
    """Fail if any account breaks a storage invariant."""
    result = engine.store.verify_invariants()
    assert result['valid'], result['violations']


def snapshot(engine: LendingEngine, token: InMemoryStableToken, custody: InMemoryCustody, owner: str):
    """Everything a rejected operation must leave untouched."""
    return (
        engine.get_loan_account(owner),
        token.balance_of(owner),
        token.balance_of(engine.wallet),
        custody.balance_of(owner),
        custody.balance_of(custody.vault),
        len(engine.operations),
    )


# Operation names accepted by apply_operation()
OPERATION_NAMES = ("deposit", "borrow", "repay", "repay_partial", "withdraw", "advance")


def apply_operation(engine: LendingEngine, token: InMemoryStableToken, owner: str, name: str, n: int) -> bool:
    """
    Apply one engine operation sized by n (1..300).

    Repayments approve the quoted amount, except every third one which
    approves one minor unit short so that some repayments are rejected.
    Raises whatever the engine raises.

    Returns:
        False if no engine operation was attempted (a time advance, or a
        repayment on an account with no open loans), True otherwise.
    """
    account = engine.get_loan_account(owner)
    open_indices = account.open_loan_indices()

    if name == "deposit":
        engine.deposit_collateral(owner, n * ONE // 100)
    elif name == "borrow":
        engine.borrow(owner, n * ONE // 2)
    elif name == "repay":
        if not open_indices:
            return False
        index = open_indices[n % len(open_indices)]
        quote = engine.calculate_repayment_amount(owner, [index])
        token.approve(owner, engine.wallet, quote - 1 if n % 3 == 0 else quote)
        engine.repay(owner, [index])
    elif name == "repay_partial":
        if not open_indices:
            return False
        index = open_indices[n % len(open_indices)]
        token.approve(owner, engine.wallet, 10_000 * ONE)
        engine.repay_partial(owner, index, n * ONE // 10)
    elif name == "withdraw":
        engine.withdraw_collateral(owner, n * ONE // 100)
    elif name == "advance":
        engine.advance_time(engine.current_time + timedelta(days=n))
        return False
    else:
        raise ValueError(f"Unknown operation {name}")
    return True


def operation_sequences(max_size: int = 30):
    """Hypothesis strategy for lists of (operation name, size) pairs."""
    return st.lists(
        st.tuples(st.sampled_from(OPERATION_NAMES), st.integers(min_value=1, max_value=300)),
        max_size=max_size,
    )


def user_engine():
    """Engine where alice holds 10 base units and 1000 stable units."""
    engine, token, custody = make_engine(users={"alice": 10 * ONE})
    token.faucet("alice", 1000 * ONE)
    return engine, token, custody
