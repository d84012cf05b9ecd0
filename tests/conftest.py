"""
conftest.py - Shared pytest fixtures for collateralx tests

Provides common fixtures used across unit, conformance and functional tests:
- Bare collaborators (store, token, custody)
- Engines at different stages (funded, collateralized, with an open loan)
"""

import pytest

from collateralx import LedgerStore, InMemoryStableToken, InMemoryCustody

from tests.helpers import ONE, make_engine


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def store():
    """Fresh, empty ledger store."""
    return LedgerStore()


@pytest.fixture
def token():
    return InMemoryStableToken()


@pytest.fixture
def custody():
    return InMemoryCustody()


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def engine_setup():
    """Engine with 1000 units of reserves; alice and bob hold 10 base units each."""
    return make_engine(users={"alice": 10 * ONE, "bob": 10 * ONE})


@pytest.fixture
def engine(engine_setup):
    return engine_setup[0]


@pytest.fixture
def collateralized_setup(engine_setup):
    """Alice has deposited 1 base unit of collateral."""
    engine, token, custody = engine_setup
    engine.deposit_collateral("alice", ONE)
    return engine, token, custody


@pytest.fixture
def borrowed_setup(collateralized_setup):
    """Alice has borrowed 100 units against 1 base unit (loan index 0)."""
    engine, token, custody = collateralized_setup
    engine.borrow("alice", 100 * ONE)
    return engine, token, custody
