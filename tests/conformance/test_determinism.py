"""
Determinism Conformance Tests

INVARIANT: Same operations + same starting state = same result.

    ∀ engines E1, E2 built identically, ∀ operation sequence S:
        apply(E1, S) and apply(E2, S) raise the same errors and end with
        identical accounts, balances and operation logs.

All arithmetic is integer, so there is no rounding drift between runs.
"""

from hypothesis import given, settings

from collateralx import LedgerError

from tests.helpers import apply_operation, operation_sequences, snapshot, user_engine


def run(ops):
    engine, token, custody = user_engine()
    outcomes = []
    for name, n in ops:
        try:
            apply_operation(engine, token, "alice", name, n)
            outcomes.append(None)
        except LedgerError as e:
            outcomes.append(type(e))
    return engine, token, custody, outcomes


class TestDeterminismProperties:
    """Property-based determinism tests."""

    @given(operation_sequences())
    @settings(max_examples=100, deadline=None)
    def test_replay_gives_identical_state(self, ops):
        """
        PROPERTY: Two runs of the same sequence end in the same state.
        """
        e1, t1, c1, out1 = run(ops)
        e2, t2, c2, out2 = run(ops)

        assert out1 == out2
        assert snapshot(e1, t1, c1, "alice") == snapshot(e2, t2, c2, "alice")
        assert e1.current_time == e2.current_time

    @given(operation_sequences())
    @settings(max_examples=100, deadline=None)
    def test_replay_gives_identical_log(self, ops):
        """
        PROPERTY: Two runs of the same sequence produce the same operation log.
        """
        e1, _, _, _ = run(ops)
        e2, _, _, _ = run(ops)

        assert e1.operations == e2.operations


class TestStoreClone:
    """A cloned store evolves independently but identically."""

    @given(operation_sequences(max_size=15))
    @settings(max_examples=50, deadline=None)
    def test_clone_matches_original(self, ops):
        engine, _, _, _ = run(ops)
        cloned = engine.store.clone()

        assert cloned.get_account("alice") == engine.store.get_account("alice")
        assert cloned.verify_invariants() == engine.store.verify_invariants()
