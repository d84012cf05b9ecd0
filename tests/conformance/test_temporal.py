"""
Temporal Conformance Tests

INVARIANT: Engine time only moves forward.

    advance_time(t) with t < current_time is rejected and changes nothing.
    Operation timestamps in the log are non-decreasing.

INVARIANT: Loans accrue from their checkpoint.

    A new loan's timestamp is the engine time at which it was borrowed.
    A partial repayment moves the checkpoint of a still-open loan to now.
"""

from datetime import timedelta

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from collateralx import LedgerError, elapsed_seconds

from tests.helpers import (
    ONE, START, ONE_YEAR,
    apply_operation, operation_sequences, user_engine, make_engine,
)


class TestTemporalProperties:
    """Property-based temporal tests."""

    @given(operation_sequences())
    @settings(max_examples=100, deadline=None)
    def test_log_timestamps_non_decreasing(self, ops):
        engine, token, _ = user_engine()

        for name, n in ops:
            try:
                apply_operation(engine, token, "alice", name, n)
            except LedgerError:
                pass

        timestamps = [op.timestamp for op in engine.operations]
        assert timestamps == sorted(timestamps)
        assert all(ts <= engine.current_time for ts in timestamps)

    @given(operation_sequences())
    @settings(max_examples=100, deadline=None)
    def test_checkpoints_never_in_the_future(self, ops):
        """
        PROPERTY: Every loan's accrual checkpoint is at or before engine time.
        """
        engine, token, _ = user_engine()

        for name, n in ops:
            try:
                apply_operation(engine, token, "alice", name, n)
            except LedgerError:
                pass
            for loan in engine.get_loan_account("alice").loans:
                assert loan.timestamp <= engine.current_time

    @given(st.integers(min_value=1, max_value=10**6))
    @settings(max_examples=50)
    def test_backwards_time_rejected(self, seconds):
        engine, _, _ = make_engine()
        engine.advance_time(START + ONE_YEAR)

        with pytest.raises(ValueError):
            engine.advance_time(START + ONE_YEAR - timedelta(seconds=seconds))
        assert engine.current_time == START + ONE_YEAR

    @given(st.integers(min_value=0, max_value=10**9), st.integers(min_value=0, max_value=999_999))
    @settings(max_examples=100)
    def test_elapsed_seconds_floors_fractions(self, seconds, micros):
        end = START + timedelta(seconds=seconds, microseconds=micros)
        assert elapsed_seconds(START, end) == seconds


class TestTemporalExamples:
    """Explicit temporal examples."""

    def test_loan_timestamp_is_borrow_time(self):
        engine, _, _ = make_engine(users={"alice": ONE})
        engine.deposit_collateral("alice", ONE)
        engine.advance_time(START + timedelta(days=10))
        engine.borrow("alice", 10 * ONE)

        assert engine.get_loan_account("alice").loans[0].timestamp == START + timedelta(days=10)

    def test_partial_repay_moves_checkpoint(self, borrowed_setup):
        engine, token, _ = borrowed_setup
        later = START + timedelta(days=100)
        engine.advance_time(later)
        token.approve("alice", engine.wallet, 50 * ONE)

        engine.repay_partial("alice", 0, 10 * ONE)

        assert engine.get_loan_account("alice").loans[0].timestamp == later
