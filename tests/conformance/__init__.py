"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lending ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - Rejected operations change nothing
2. loan_accounting.py - total_loan_amount equals outstanding principal; indices never reused
3. solvency.py - Every applied operation leaves the account solvent
4. conservation.py - Value held by custody and token matches the ledger
5. interest.py - Simple interest is deterministic, monotonic and rounds down
6. determinism.py - Replaying the same operations gives the same state
7. temporal.py - Time only moves forward; loans accrue from their checkpoint

These tests use hypothesis for property-based testing.
"""
